"""Chronological reasoning timeline: thinking, replies, tool calls and results."""

import json
from typing import Optional

from ..models import (
    AssistantEvent,
    TextBlock,
    ThinkingBlock,
    TimelineEntry,
    ToolResultBlock,
    ToolUseBlock,
    UserEvent,
)
from ..tree import SessionTree
from .utils import to_display_text, truncate

FILE_TOOLS = {"Read", "Write", "Edit", "MultiEdit"}
SKILL_NAME_KEYS = ("skill", "skill_name", "name", "skill_path", "path")

RESULT_PREVIEW_LENGTH = 200


def analyze_reasoning_chain(tree: SessionTree) -> list[TimelineEntry]:
    timeline: list[TimelineEntry] = []

    for event in tree.get_chronological_events():
        if isinstance(event, AssistantEvent):
            timeline.extend(_assistant_entries(event))
        elif isinstance(event, UserEvent) and not isinstance(event.content, str):
            for block in event.content:
                if isinstance(block, ToolResultBlock):
                    timeline.append(
                        TimelineEntry(
                            type="tool_result",
                            timestamp=event.timestamp,
                            content=truncate(
                                to_display_text(block.content), RESULT_PREVIEW_LENGTH
                            ),
                            tool_use_id=block.tool_use_id,
                            is_error=block.is_error,
                        )
                    )

    return timeline


def _assistant_entries(event: AssistantEvent) -> list[TimelineEntry]:
    ctx_spike = event.usage.cache_creation_input_tokens
    turn_id = event.turn_key
    entries = []

    for block in event.content:
        if isinstance(block, ThinkingBlock):
            entries.append(
                TimelineEntry(
                    type="thinking",
                    timestamp=event.timestamp,
                    content=block.thinking,
                    ctx_spike_tokens=ctx_spike,
                    assistant_turn_id=turn_id,
                )
            )
        elif isinstance(block, TextBlock):
            entries.append(
                TimelineEntry(
                    type="text",
                    timestamp=event.timestamp,
                    content=block.text,
                    ctx_spike_tokens=ctx_spike,
                    assistant_turn_id=turn_id,
                )
            )
        elif isinstance(block, ToolUseBlock):
            summary = summarize_tool_input(block.name, block.input, event.cwd)
            entries.append(
                TimelineEntry(
                    type="tool_use",
                    timestamp=event.timestamp,
                    content=f"{block.name}({summary})",
                    tool_name=block.name,
                    tool_input=block.input,
                    tool_use_id=block.id,
                    ctx_spike_tokens=ctx_spike,
                    assistant_turn_id=turn_id,
                )
            )

    return entries


def display_path(value: str, cwd: Optional[str] = None) -> str:
    """Strip the working directory prefix from a path, if present."""
    if not cwd:
        return value
    prefix = cwd if cwd.endswith("/") else cwd + "/"
    if value.startswith(prefix):
        return value[len(prefix) :]
    return value


def extract_skill_name(tool_input: dict, cwd: Optional[str] = None) -> Optional[str]:
    """Skill name from a Skill call: a bare name, or the directory of a SKILL.md."""
    for key in SKILL_NAME_KEYS:
        value = tool_input.get(key)
        if not isinstance(value, str) or not value:
            continue

        normalized = display_path(value, cwd)
        if normalized.endswith("/SKILL.md"):
            segments = [s for s in normalized.split("/") if s]
            if len(segments) >= 2:
                return segments[-2]
        if "/" not in normalized:
            return normalized

    return None


def summarize_tool_input(tool_name: str, tool_input: dict, cwd: Optional[str] = None) -> str:
    """One-line description of a tool call's arguments.

    Examples:
        Skill -> "skill: pdf"
        Read  -> "file: src/app.py"
        Bash  -> "command: ls -la, timeout: 5000"
    """
    if tool_name == "Skill":
        skill_name = extract_skill_name(tool_input, cwd)
        if skill_name:
            return f"skill: {skill_name}"

    if tool_name in FILE_TOOLS:
        file_path = tool_input.get("file_path") or tool_input.get("path")
        if isinstance(file_path, str) and file_path:
            return f"file: {truncate(display_path(file_path, cwd), 120)}"

    parts = []
    for key, value in tool_input.items():
        if isinstance(value, str):
            parts.append(f"{key}: {truncate(display_path(value, cwd), 60)}")
        else:
            parts.append(f"{key}: {json.dumps(value, separators=(',', ':'))}")
    return ", ".join(parts)
