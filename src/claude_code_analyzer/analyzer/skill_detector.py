"""Detect reads of skill and agent-configuration files and estimate their cost."""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..models import AssistantEvent, SkillFileImpact, ToolPair
from ..tree import SessionTree
from .tool_dashboard import resolve_file_path
from .utils import parse_timestamp_ms, round_half_up, to_display_text

DEFAULT_SPIKE_WINDOW_MS = 5000

# First matching pattern decides the impact type
SKILL_PATTERNS = [
    (re.compile(r"CLAUDE\.md", re.IGNORECASE), "claude-md"),
    (re.compile(r"SKILL\.md", re.IGNORECASE), "skill"),
    (re.compile(r"\.claude/", re.IGNORECASE), "config"),
    (re.compile(r"skills/", re.IGNORECASE), "skill"),
    (re.compile(r"AGENTS\.md", re.IGNORECASE), "config"),
]

EMBEDDED_PATH_RE = re.compile(
    r"\S*(?:CLAUDE\.md|SKILL\.md|\.claude/|skills/|AGENTS\.md)\S*", re.IGNORECASE
)

# Rough characters-per-token ratio for English text and code
CHARS_PER_TOKEN = 4


@dataclass
class SkillDetectorResult:
    skill_impacts: list[SkillFileImpact] = field(default_factory=list)


def match_skill_pattern(path: str) -> Optional[str]:
    """Impact type for a path, or None if it is not a skill/config file."""
    for pattern, impact_type in SKILL_PATTERNS:
        if pattern.search(path):
            return impact_type
    return None


def extract_skill_path(pair: ToolPair) -> Optional[str]:
    """Candidate path for a tool call.

    An explicit ``file_path``/``path`` input always wins, even when it is
    not a skill file. Otherwise a Grep/Glob ``pattern`` naming a skill
    file, and finally the first such path mentioned in the result text.
    """
    tool_input = pair.tool_use.input
    file_path = resolve_file_path(tool_input)
    if file_path:
        return file_path

    pattern = tool_input.get("pattern")
    if isinstance(pattern, str) and pattern and match_skill_pattern(pattern):
        return pattern

    if pair.tool_result is not None:
        match = EMBEDDED_PATH_RE.search(to_display_text(pair.tool_result.content))
        if match:
            return match.group(0)

    return None


def _cache_creation_by_request(events: list[AssistantEvent]) -> dict[str, int]:
    spikes: dict[str, int] = {}
    for event in events:
        key = event.turn_key or ""
        tokens = event.usage.cache_creation_input_tokens
        if tokens > spikes.get(key, 0):
            spikes[key] = tokens
    return spikes


def find_nearby_spike(
    pair: ToolPair,
    assistant_events: list[AssistantEvent],
    spikes: dict[str, int],
    window_ms: int = DEFAULT_SPIKE_WINDOW_MS,
) -> int:
    """Largest cache write among API calls within ``window_ms`` of the call."""
    pair_ms = parse_timestamp_ms(pair.assistant_timestamp)
    if pair_ms is None:
        return 0

    max_spike = 0
    for event in assistant_events:
        event_ms = parse_timestamp_ms(event.timestamp)
        if event_ms is None or abs(event_ms - pair_ms) > window_ms:
            continue
        max_spike = max(max_spike, spikes.get(event.turn_key or "", 0))
    return max_spike


def analyze_skills(
    tree: SessionTree, window_ms: int = DEFAULT_SPIKE_WINDOW_MS
) -> SkillDetectorResult:
    assistant_events = tree.get_assistant_events()
    spikes = _cache_creation_by_request(assistant_events)
    impacts: list[SkillFileImpact] = []
    seen: set[str] = set()

    for pair in tree.get_tool_pairs():
        path = extract_skill_path(pair)
        if not path:
            continue
        impact_type = match_skill_pattern(path)
        if impact_type is None or path in seen:
            continue
        seen.add(path)

        result_text = to_display_text(pair.tool_result.content) if pair.tool_result else ""
        impacts.append(
            SkillFileImpact(
                file_path=path,
                type=impact_type,
                estimated_tokens=int(round_half_up(len(result_text) / CHARS_PER_TOKEN)),
                cache_creation_spike=find_nearby_spike(
                    pair, assistant_events, spikes, window_ms
                ),
            )
        )

    return SkillDetectorResult(skill_impacts=impacts)
