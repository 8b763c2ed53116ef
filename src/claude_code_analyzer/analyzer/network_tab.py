"""Network-tab style inspector: per-scope requests and unified event rows.

Every scope (the main conversation or one subagent) gets two views:

- ``requests``: one row per tool call, with latency and context spike
- ``events``: every thinking/text/tool/hook/system/compaction record

tool_result records never become rows of their own. Their outcome is
merged back into the tool_use row that asked for them.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from ..models import (
    MAIN_SCOPE,
    UNKNOWN_SCOPE,
    AssistantEvent,
    NetworkAgentScope,
    NetworkRequestEntry,
    NetworkTimelineEvent,
    ProgressEvent,
    SessionEvent,
    SystemEvent,
    TextBlock,
    ThinkingBlock,
    ToolPair,
    ToolUseBlock,
    UserEvent,
)
from ..tree import SessionTree
from .correlation import (
    build_agent_by_uuid_index,
    build_assistant_by_tool_use_id,
    build_task_subagent_index,
    build_tool_scope_index,
    resolve_compaction_agent,
    resolve_compaction_scope,
)
from .utils import elapsed_ms, first_line, to_display_text

TASK_TOOL_NAMES = {"Task"}

# Progress records already represented elsewhere: agent_progress by the
# subagent's own transcript, bash_progress by the tool_use/tool_result pair.
DROPPED_PROGRESS_TYPES = frozenset({"agent_progress", "bash_progress"})

CALLBACK_MARKER = ": callback"

EVENT_KINDS = (
    "tool_use",
    "user_message",
    "assistant_text",
    "thinking",
    "hook",
    "system",
    "compaction",
)


@dataclass
class NetworkTabResult:
    scopes: list[NetworkAgentScope] = field(default_factory=list)

    def get_scope(self, scope_id: str) -> Optional[NetworkAgentScope]:
        for scope in self.scopes:
            if scope.id == scope_id:
                return scope
        return None


@dataclass
class _Lookups:
    task_subagents: Mapping[str, str]
    tool_scopes: Mapping[str, str]
    agent_by_uuid: Mapping[str, str]


def analyze_network_tab(tree: SessionTree) -> NetworkTabResult:
    assistant_events = tree.get_assistant_events()
    chronological = tree.get_chronological_events()
    pairs = tree.get_tool_pairs()

    assistants_by_tool_use_id = build_assistant_by_tool_use_id(assistant_events)
    lookups = _Lookups(
        task_subagents=build_task_subagent_index(chronological),
        tool_scopes=build_tool_scope_index(assistant_events),
        agent_by_uuid=build_agent_by_uuid_index(tree.events),
    )

    scopes: dict[str, NetworkAgentScope] = {}

    def ensure_scope(scope_id: str) -> NetworkAgentScope:
        if scope_id not in scopes:
            scopes[scope_id] = NetworkAgentScope(id=scope_id, label=scope_id)
        return scopes[scope_id]

    for pair in pairs:
        assistant = assistants_by_tool_use_id.get(pair.tool_use.id)
        request = build_request_entry(pair, assistant, lookups.task_subagents)
        ensure_scope(request.scope_id).requests.append(request)

    counter = 0
    for event in chronological:
        rows = build_timeline_events(event, counter, lookups)
        for row in rows:
            ensure_scope(row.scope_id).events.append(row)
        counter += len(rows) or 1

    user_events = tree.get_user_events()
    for scope in scopes.values():
        merge_tool_results(scope.events, pairs)
        merge_tool_use_results(scope.events, user_events)
        scope.events = dedupe_hook_events(scope.events)
        scope.requests.sort(key=lambda r: r.start_timestamp or "")
        scope.events.sort(key=lambda e: e.timestamp)

    return NetworkTabResult(scopes=sorted(scopes.values(), key=_scope_sort_key))


def _scope_sort_key(scope: NetworkAgentScope) -> tuple[int, str]:
    return (0, "") if scope.id == MAIN_SCOPE else (1, scope.id)


def _linked_subagent(block: ToolUseBlock, task_subagents: Mapping[str, str]) -> Optional[str]:
    if block.name not in TASK_TOOL_NAMES:
        return None
    return task_subagents.get(block.id)


def build_request_entry(
    pair: ToolPair,
    assistant: Optional[AssistantEvent],
    task_subagents: Mapping[str, str],
) -> NetworkRequestEntry:
    """Request row for one tool call, in the scope of the agent that made it."""
    return NetworkRequestEntry(
        tool_use_id=pair.tool_use.id,
        tool_name=pair.tool_use.name,
        scope_id=assistant.scope_id if assistant else MAIN_SCOPE,
        linked_subagent_id=_linked_subagent(pair.tool_use, task_subagents),
        start_timestamp=pair.assistant_timestamp or "",
        end_timestamp=pair.result_timestamp,
        time_ms=elapsed_ms(pair.assistant_timestamp, pair.result_timestamp),
        ctx_spike_tokens=assistant.usage.cache_creation_input_tokens if assistant else 0,
        is_error=bool(pair.tool_result and pair.tool_result.is_error),
        tool_input=pair.tool_use.input,
        tool_result_content=(
            to_display_text(pair.tool_result.content) if pair.tool_result else None
        ),
    )


def build_timeline_events(
    event: SessionEvent, counter: int, lookups: _Lookups
) -> list[NetworkTimelineEvent]:
    """Timeline rows for one raw event (possibly none)."""
    if isinstance(event, AssistantEvent):
        return _assistant_rows(event, counter, lookups)
    if isinstance(event, UserEvent):
        return _user_rows(event, counter)
    if isinstance(event, ProgressEvent):
        return _progress_rows(event, counter, lookups)
    if isinstance(event, SystemEvent):
        return [_system_row(event, counter, lookups)]
    return []


def _assistant_rows(
    event: AssistantEvent, counter: int, lookups: _Lookups
) -> list[NetworkTimelineEvent]:
    rows = []
    scope_id = event.scope_id
    usage = event.usage
    token_fields = {
        "input_tokens": usage.input_tokens,
        "output_tokens": usage.output_tokens,
        "cache_creation_tokens": usage.cache_creation_input_tokens,
        "cache_read_tokens": usage.cache_read_input_tokens,
        "request_id": event.request_id,
    }

    for block in event.content:
        if isinstance(block, ThinkingBlock):
            rows.append(
                NetworkTimelineEvent(
                    id=f"thinking-{event.uuid}-{counter}",
                    kind="thinking",
                    timestamp=event.timestamp,
                    scope_id=scope_id,
                    summary=first_line(block.thinking[:200]) or "Thinking...",
                    content=block.thinking,
                    **token_fields,
                )
            )
            counter += 1
        elif isinstance(block, TextBlock):
            rows.append(
                NetworkTimelineEvent(
                    id=f"text-{event.uuid}-{counter}",
                    kind="assistant_text",
                    timestamp=event.timestamp,
                    scope_id=scope_id,
                    summary=first_line(block.text[:200]) or "Text response",
                    content=block.text,
                    **token_fields,
                )
            )
            counter += 1
        elif isinstance(block, ToolUseBlock):
            rows.append(
                NetworkTimelineEvent(
                    id=f"tool-{block.id}",
                    kind="tool_use",
                    timestamp=event.timestamp,
                    scope_id=scope_id,
                    summary=block.name,
                    content="",
                    tool_name=block.name,
                    tool_use_id=block.id,
                    linked_subagent_id=_linked_subagent(block, lookups.task_subagents),
                    ctx_spike_tokens=usage.cache_creation_input_tokens,
                    is_error=False,
                    tool_input=block.input,
                    request_id=event.request_id,
                )
            )
    return rows


def _user_rows(event: UserEvent, counter: int) -> list[NetworkTimelineEvent]:
    scope_id = event.scope_id

    if isinstance(event.content, str):
        return [
            NetworkTimelineEvent(
                id=f"user-{event.uuid}-{counter}",
                kind="user_message",
                timestamp=event.timestamp,
                scope_id=scope_id,
                summary=first_line(event.content) or "User message",
                content=event.content,
            )
        ]

    rows = []
    for block in event.content:
        # tool_result blocks are merged into their tool_use row afterwards
        if isinstance(block, TextBlock):
            rows.append(
                NetworkTimelineEvent(
                    id=f"user-text-{event.uuid}-{counter}",
                    kind="user_message",
                    timestamp=event.timestamp,
                    scope_id=scope_id,
                    summary=first_line(block.text) or "User text",
                    content=block.text,
                )
            )
            counter += 1
    return rows


def _progress_rows(
    event: ProgressEvent, counter: int, lookups: _Lookups
) -> list[NetworkTimelineEvent]:
    data = event.data
    if event.data_type in DROPPED_PROGRESS_TYPES:
        return []

    parent_tool_id = event.related_tool_use_id
    scope_id = lookups.tool_scopes.get(parent_tool_id) if parent_tool_id else None
    if scope_id is None:
        scope_id = UNKNOWN_SCOPE if event.is_sidechain else MAIN_SCOPE

    hook_name = data.get("hookName") or data.get("hookEvent") or "hook"
    command = data.get("command") or ""
    return [
        NetworkTimelineEvent(
            id=f"hook-{event.uuid}-{counter}",
            kind="hook",
            timestamp=event.timestamp,
            scope_id=scope_id,
            summary=hook_name,
            content=f"{hook_name}: {command}" if command else hook_name,
            hook_event=data.get("hookEvent"),
            hook_name=data.get("hookName"),
            progress_type=event.data_type,
        )
    ]


def _system_row(event: SystemEvent, counter: int, lookups: _Lookups) -> NetworkTimelineEvent:
    subtype = event.subtype or "system"

    if event.is_compact_boundary:
        metadata = event.compact_metadata
        trigger = metadata.trigger if metadata else None
        return NetworkTimelineEvent(
            id=f"compaction-{event.uuid}-{counter}",
            kind="compaction",
            timestamp=event.timestamp,
            scope_id=resolve_compaction_scope(event, lookups.agent_by_uuid),
            summary=f"Compaction ({trigger})" if trigger else "Compaction",
            content=event.content or "Conversation compacted",
            linked_subagent_id=resolve_compaction_agent(event, lookups.agent_by_uuid),
            subtype=subtype,
            compact_trigger=trigger,
            pre_tokens=metadata.pre_tokens if metadata else None,
        )

    if event.content:
        content = event.content
    elif event.duration_ms:
        content = f"Turn duration: {event.duration_ms}ms"
    else:
        content = subtype
    return NetworkTimelineEvent(
        id=f"system-{event.uuid}-{counter}",
        kind="system",
        timestamp=event.timestamp,
        scope_id=event.scope_id,
        summary=subtype,
        content=content,
        subtype=subtype,
        duration_ms=event.duration_ms,
    )


def merge_tool_results(
    events: list[NetworkTimelineEvent], pairs: Iterable[ToolPair]
) -> None:
    """Patch tool outcomes into the tool_use rows created earlier, in place."""
    rows_by_tool_use_id = {
        row.tool_use_id: row
        for row in events
        if row.kind == "tool_use" and row.tool_use_id
    }
    for pair in pairs:
        row = rows_by_tool_use_id.get(pair.tool_use.id)
        if row is None or pair.tool_result is None:
            continue
        row.is_error = pair.tool_result.is_error
        row.tool_result_content = to_display_text(pair.tool_result.content)
        row.time_ms = elapsed_ms(pair.assistant_timestamp, pair.result_timestamp)


def merge_tool_use_results(
    events: list[NetworkTimelineEvent], user_events: Iterable[UserEvent]
) -> None:
    """Attach ``toolUseResult`` metadata to the tool_use rows it answers."""
    rows_by_tool_use_id = {
        row.tool_use_id: row
        for row in events
        if row.kind == "tool_use" and row.tool_use_id
    }
    for event in user_events:
        if not isinstance(event.tool_use_result, dict):
            continue
        for result in event.tool_results:
            row = rows_by_tool_use_id.get(result.tool_use_id)
            if row is not None and row.tool_use_result is None:
                row.tool_use_result = event.tool_use_result


def _is_callback(row: NetworkTimelineEvent) -> bool:
    return row.content == "callback" or row.content.endswith(CALLBACK_MARKER)


def dedupe_hook_events(events: list[NetworkTimelineEvent]) -> list[NetworkTimelineEvent]:
    """Drop the callback echo of a hook that was also logged as a command.

    Hook rows sharing (hook name, timestamp) form a group; a group of more
    than one keeps its first non-callback row (or its first row if all are
    callbacks). Other rows are untouched and keep their order.
    """
    groups: dict[tuple[str, str], list[NetworkTimelineEvent]] = {}
    for row in events:
        if row.kind == "hook":
            key = (row.hook_name or row.summary, row.timestamp)
            groups.setdefault(key, []).append(row)

    dropped: set[int] = set()
    for rows in groups.values():
        if len(rows) < 2:
            continue
        keep = next((row for row in rows if not _is_callback(row)), rows[0])
        dropped.update(id(row) for row in rows if row is not keep)

    return [row for row in events if id(row) not in dropped]


@dataclass
class NetworkFilters:
    """Values available to the inspector's filter controls."""

    kinds: list[str] = field(default_factory=list)
    tool_names: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=lambda: ["ok"])


def request_status(request: NetworkRequestEntry) -> str:
    return "error" if request.is_error else "ok"


def network_filters(result: NetworkTabResult) -> NetworkFilters:
    kinds: set[str] = set()
    tool_names: set[str] = set()
    statuses: set[str] = set()
    for scope in result.scopes:
        kinds.update(row.kind for row in scope.events)
        for request in scope.requests:
            tool_names.add(request.tool_name)
            statuses.add(request_status(request))
    return NetworkFilters(
        kinds=sorted(kinds),
        tool_names=sorted(tool_names),
        statuses=sorted(statuses) or ["ok"],
    )


@dataclass
class RequestFilter:
    """Row filter for a scope's request table. Empty criteria match all."""

    tool_names: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    search: str = ""
    min_time_ms: Optional[int] = None

    def matches(self, request: NetworkRequestEntry) -> bool:
        if self.tool_names and request.tool_name not in self.tool_names:
            return False
        if self.statuses and request_status(request) not in self.statuses:
            return False
        if self.min_time_ms is not None and (request.time_ms or 0) < self.min_time_ms:
            return False

        search = self.search.strip().lower()
        if search:
            haystack = " ".join(
                [
                    request.tool_name,
                    request.tool_use_id,
                    request.linked_subagent_id or "",
                    request.tool_result_content or "",
                ]
            ).lower()
            if search not in haystack:
                return False
        return True

    def apply(self, requests: Iterable[NetworkRequestEntry]) -> list[NetworkRequestEntry]:
        return [request for request in requests if self.matches(request)]
