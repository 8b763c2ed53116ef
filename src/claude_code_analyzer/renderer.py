"""Plain-text terminal rendering of analysis results."""

import os
from typing import Optional

import click

from .analyzer.network_tab import NetworkTabResult, request_status
from .analyzer.tool_dashboard import PATTERN_SEPARATOR
from .analyzer.utils import parse_timestamp_ms, round_half_up
from .models import (
    CompactionEvent,
    FileAccess,
    NetworkRequestEntry,
    SkillFileImpact,
    TimelineEntry,
    TokenTurn,
    ToolPattern,
    ToolStats,
)

BAR_WIDTH = 50
MAX_FILES_SHOWN = 15
MAX_PATTERNS_SHOWN = 10


def _heading(title: str) -> str:
    return click.style(f"\n {title}\n", bold=True, underline=True)


def format_time(timestamp: Optional[str]) -> str:
    """HH:MM:SS of an ISO timestamp, or the raw string if it does not parse."""
    if not timestamp:
        return "--:--:--"
    if parse_timestamp_ms(timestamp) is None:
        return timestamp
    # ISO-8601 keeps the wall-clock time at a fixed offset
    return timestamp[11:19]


def one_line(text: str, max_length: int) -> str:
    flat = text.replace("\n", " ").strip()
    if len(flat) <= max_length:
        return flat
    return flat[:max_length] + "..."


def shorten_path(file_path: str) -> str:
    home = os.environ.get("HOME", "")
    if home and file_path.startswith(home):
        return "~" + file_path[len(home) :]
    parts = file_path.split("/")
    if len(parts) > 3:
        return ".../" + "/".join(parts[-3:])
    return file_path


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    """Left-aligned columns sized to their widest cell."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt(cells: list[str]) -> str:
        return "  " + "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells))

    lines = [click.style(fmt(headers), bold=True)]
    lines.append("  " + "  ".join("-" * w for w in widths))
    lines.extend(fmt(row) for row in rows)
    return lines


def render_timeline(timeline: list[TimelineEntry], show_thinking: bool = True) -> str:
    lines = [_heading("Reasoning Chain")]

    for entry in timeline:
        if entry.type == "thinking" and not show_thinking:
            continue
        time = click.style(format_time(entry.timestamp), fg="bright_black")

        if entry.type == "thinking":
            lines.append(f"{time} {click.style('[think] ' + one_line(entry.content, 120), dim=True)}")
        elif entry.type == "text":
            lines.append(f"{time} [text] {one_line(entry.content, 120)}")
        elif entry.type == "tool_use":
            args = entry.content[len(entry.tool_name or "") :]
            lines.append(
                f"{time} {click.style('[tool] ' + (entry.tool_name or ''), fg='cyan')} "
                f"{click.style(one_line(args, 100), fg='bright_black')}"
            )
        elif entry.type == "tool_result":
            if entry.is_error:
                lines.append(f"{time} {click.style('[fail] ' + one_line(entry.content, 120), fg='red')}")
            else:
                lines.append(f"{time} {click.style('[ok] ' + one_line(entry.content, 120), fg='green')}")

    return "\n".join(lines)


def render_tool_dashboard(
    tool_stats: list[ToolStats],
    file_access: list[FileAccess],
    tool_patterns: list[ToolPattern],
    tool_filter: Optional[str] = None,
) -> str:
    lines = [_heading("Tool Dashboard")]

    if tool_filter:
        tool_stats = [s for s in tool_stats if s.name.lower() == tool_filter.lower()]

    rows = [
        [
            s.name,
            str(s.count),
            str(s.successes),
            str(s.failures),
            f"{s.avg_duration_ms}ms" if s.avg_duration_ms is not None else "-",
            f"{s.attributed_total_tokens:,.1f}",
        ]
        for s in tool_stats
    ]
    lines.extend(_table(["Tool", "Calls", "Success", "Fail", "Avg Duration", "Tokens"], rows))

    if file_access:
        lines.append(click.style("\n  Files Accessed\n", bold=True))
        rows = [
            [shorten_path(f.path), str(f.reads), str(f.writes), str(f.edits)]
            for f in file_access[:MAX_FILES_SHOWN]
        ]
        lines.extend(_table(["File", "Reads", "Writes", "Edits"], rows))
        if len(file_access) > MAX_FILES_SHOWN:
            lines.append(f"  ... and {len(file_access) - MAX_FILES_SHOWN} more files")

    if tool_patterns:
        lines.append(click.style("\n  Sequential Patterns\n", bold=True))
        for pattern in tool_patterns[:MAX_PATTERNS_SHOWN]:
            sequence = click.style(PATTERN_SEPARATOR.join(pattern.sequence), fg="yellow")
            lines.append(f"  {sequence} ({pattern.count}x)")

    return "\n".join(lines)


def render_context_tracker(
    turns: list[TokenTurn], compactions: list[CompactionEvent]
) -> str:
    lines = [_heading("Context Tracker")]

    for turn in turns:
        percent = turn.percent_of_limit or 0.0
        filled = min(int(round_half_up(percent / 100 * BAR_WIDTH)), BAR_WIDTH)
        bar = click.style("#" * filled, fg="blue") + "." * (BAR_WIDTH - filled)
        label = "  RESET" if turn.is_reset else f"T{turn.turn_index:>3}"
        if turn.scope_id != "main":
            label += f" [{turn.scope_id[:12]}]"
        breakdown = (
            f"in:{turn.input_tokens} cache+:{turn.cache_creation_tokens} "
            f"cache~:{turn.cache_read_tokens} out:{turn.output_tokens}"
        )
        lines.append(f"  {label} {bar} {percent:5.1f}%  {breakdown}")

    if compactions:
        lines.append(click.style("\n  Compaction Events\n", bold=True, fg="yellow"))
        for c in compactions:
            trigger = f" [{c.trigger}]" if c.trigger else ""
            lines.append(
                f"  After turn {c.after_turn_index} ({c.scope_id}, {c.source}{trigger}): "
                f"{c.tokens_before:,} -> {c.tokens_after:,} (freed {c.tokens_freed:,} tokens)"
            )

    real_turns = [t for t in turns if not t.is_reset]
    if real_turns:
        peak = max(t.total_tokens for t in real_turns)
        total_out = sum(t.output_tokens for t in real_turns)
        lines.append(f"\n  Peak: {peak:,} tokens | Total output: {total_out:,} tokens")

    return "\n".join(lines)


def render_skill_impact(impacts: list[SkillFileImpact]) -> str:
    if not impacts:
        return ""

    lines = [_heading("Skill/Config Impact")]
    rows = [
        [
            shorten_path(i.file_path),
            i.type,
            f"{i.estimated_tokens:,}",
            f"{i.cache_creation_spike:,}" if i.cache_creation_spike > 0 else "-",
        ]
        for i in impacts
    ]
    lines.extend(_table(["File", "Type", "Est. Tokens", "Cache Spike"], rows))
    return "\n".join(lines)


def render_requests(requests: list[NetworkRequestEntry]) -> list[str]:
    rows = [
        [
            format_time(r.start_timestamp),
            r.tool_name,
            request_status(r) if r.end_timestamp else "pending",
            f"{r.time_ms}ms" if r.time_ms is not None else "-",
            f"{r.ctx_spike_tokens:,}",
            r.linked_subagent_id or "",
        ]
        for r in requests
    ]
    return _table(["Start", "Tool", "Status", "Time", "Ctx Spike", "Subagent"], rows)


def render_network_tab(
    network: NetworkTabResult,
    requests_by_scope: Optional[dict[str, list[NetworkRequestEntry]]] = None,
    show_events: bool = False,
) -> str:
    """Per-scope request tables, optionally followed by the event rows."""
    lines = [_heading("Network")]

    for scope in network.scopes:
        requests = scope.requests
        if requests_by_scope is not None:
            requests = requests_by_scope.get(scope.id, [])
        title = f"  Scope: {scope.label} ({len(requests)} requests, {len(scope.events)} events)"
        lines.append(click.style(title, bold=True))
        if requests:
            lines.extend(render_requests(requests))
        else:
            lines.append("  (no requests)")

        if show_events:
            lines.append("")
            for row in scope.events:
                time = format_time(row.timestamp)
                lines.append(f"  {time} {row.kind:<14} {one_line(row.summary, 80)}")
        lines.append("")

    return "\n".join(lines)
