"""Tool usage statistics, file access counts and repeated tool sequences."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from ..models import AssistantEvent, FileAccess, ToolPair, ToolPattern, ToolStats
from ..tree import SessionTree
from .utils import elapsed_ms, round_half_up

READ_TOOLS = {"Read"}
WRITE_TOOLS = {"Write"}
EDIT_TOOLS = {"Edit", "MultiEdit"}

PATTERN_SEPARATOR = " → "


@dataclass
class ToolDashboardResult:
    tool_stats: list[ToolStats] = field(default_factory=list)
    file_access: list[FileAccess] = field(default_factory=list)
    tool_patterns: list[ToolPattern] = field(default_factory=list)


@dataclass
class _TurnUsage:
    """Usage of one logical assistant turn and the tools it invoked."""

    tool_use_ids: dict = field(default_factory=dict)  # ordered set
    input: int = 0
    cache_creation: int = 0
    cache_read: int = 0
    output: int = 0


@dataclass
class TokenAttribution:
    input: float = 0.0
    cache_creation: float = 0.0
    cache_read: float = 0.0
    output: float = 0.0

    @property
    def total(self) -> float:
        return self.input + self.cache_creation + self.cache_read + self.output


def analyze_tool_dashboard(
    tree: SessionTree, window_size: int = 3, min_count: int = 2
) -> ToolDashboardResult:
    pairs = tree.get_tool_pairs()
    attribution = compute_token_attribution(tree.get_assistant_events(), pairs)
    return ToolDashboardResult(
        tool_stats=compute_tool_stats(pairs, attribution),
        file_access=compute_file_access(pairs),
        tool_patterns=detect_patterns(pairs, window_size, min_count),
    )


def compute_tool_stats(
    pairs: list[ToolPair],
    attribution: Optional[dict[str, TokenAttribution]] = None,
) -> list[ToolStats]:
    """Per-tool call counts, outcomes, mean duration and attributed tokens."""
    attribution = attribution or {}
    stats: dict[str, ToolStats] = {}
    durations: dict[str, list[int]] = {}

    for pair in pairs:
        name = pair.tool_use.name
        entry = stats.setdefault(name, ToolStats(name=name))
        entry.count += 1

        if pair.tool_result is not None:
            if pair.tool_result.is_error:
                entry.failures += 1
            else:
                entry.successes += 1

        duration = elapsed_ms(pair.assistant_timestamp, pair.result_timestamp)
        if duration is not None:
            durations.setdefault(name, []).append(duration)

    for name, entry in stats.items():
        samples = durations.get(name)
        if samples:
            entry.avg_duration_ms = int(round_half_up(sum(samples) / len(samples)))
        tokens = attribution.get(name)
        if tokens is not None:
            entry.attributed_input_tokens = round_half_up(tokens.input, 1)
            entry.attributed_cache_creation_tokens = round_half_up(tokens.cache_creation, 1)
            entry.attributed_cache_read_tokens = round_half_up(tokens.cache_read, 1)
            entry.attributed_output_tokens = round_half_up(tokens.output, 1)
            entry.attributed_total_tokens = round_half_up(tokens.total, 1)

    return sorted(stats.values(), key=lambda s: s.count, reverse=True)


def compute_token_attribution(
    assistant_events: list[AssistantEvent], pairs: list[ToolPair]
) -> dict[str, TokenAttribution]:
    """Split each turn's usage equally across the tools it invoked.

    A turn is keyed by scope plus requestId (else message id, else uuid),
    so streamed deliveries collapse into one. Usage fields take the
    maximum across deliveries. Tool use ids without a pair are ignored.
    Equal shares are an approximation: the transcript records no per-tool
    cost.
    """
    tool_name_by_id = {pair.tool_use.id: pair.tool_use.name for pair in pairs}
    turns: dict[tuple[str, str], _TurnUsage] = {}

    for event in assistant_events:
        turn_key = event.request_id or event.message_id or event.uuid or ""
        turn = turns.setdefault((event.scope_id, turn_key), _TurnUsage())
        usage = event.usage
        turn.input = max(turn.input, usage.input_tokens)
        turn.cache_creation = max(turn.cache_creation, usage.cache_creation_input_tokens)
        turn.cache_read = max(turn.cache_read, usage.cache_read_input_tokens)
        turn.output = max(turn.output, usage.output_tokens)
        for block in event.tool_uses:
            turn.tool_use_ids[block.id] = None

    by_tool: dict[str, TokenAttribution] = {}
    for turn in turns.values():
        tool_names = [
            tool_name_by_id[tool_id]
            for tool_id in turn.tool_use_ids
            if tool_id in tool_name_by_id
        ]
        if not tool_names:
            continue
        share = 1 / len(tool_names)
        for name in tool_names:
            entry = by_tool.setdefault(name, TokenAttribution())
            entry.input += turn.input * share
            entry.cache_creation += turn.cache_creation * share
            entry.cache_read += turn.cache_read * share
            entry.output += turn.output * share

    return by_tool


def resolve_file_path(tool_input: dict) -> Optional[str]:
    """The file a tool call targets, from ``file_path`` or ``path``."""
    file_path = tool_input.get("file_path")
    if file_path is None:
        file_path = tool_input.get("path")
    if isinstance(file_path, str) and file_path:
        return file_path
    return None


def compute_file_access(pairs: list[ToolPair]) -> list[FileAccess]:
    files: dict[str, FileAccess] = {}

    for pair in pairs:
        file_path = resolve_file_path(pair.tool_use.input)
        if not file_path:
            continue

        entry = files.setdefault(file_path, FileAccess(path=file_path))
        name = pair.tool_use.name
        if name in READ_TOOLS:
            entry.reads += 1
        elif name in WRITE_TOOLS:
            entry.writes += 1
        elif name in EDIT_TOOLS:
            entry.edits += 1

    return sorted(files.values(), key=lambda f: f.total, reverse=True)


def detect_patterns(
    pairs: list[ToolPair], window_size: int = 3, min_count: int = 2
) -> list[ToolPattern]:
    """Count exact tool-name subsequences of ``window_size`` consecutive calls."""
    tool_names = [pair.tool_use.name for pair in pairs]
    counter: Counter = Counter()
    if window_size < 1:
        return []
    for i in range(len(tool_names) - window_size + 1):
        counter[tuple(tool_names[i : i + window_size])] += 1

    patterns = [
        ToolPattern(sequence=list(sequence), count=count)
        for sequence, count in counter.items()
        if count >= min_count
    ]
    return sorted(patterns, key=lambda p: p.count, reverse=True)
