"""Cross-reference tables shared by the analyzers.

Each builder walks the events once and returns a read-only mapping. When
several records could fill the same key, the first one wins.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from ..models import (
    AssistantEvent,
    ProgressEvent,
    SessionEvent,
    SystemEvent,
    UserEvent,
    MAIN_SCOPE,
    UNKNOWN_SCOPE,
)


def build_assistant_by_tool_use_id(
    assistant_events: Iterable[AssistantEvent],
) -> Mapping[str, AssistantEvent]:
    """Map each tool_use id to the assistant event that emitted it.

    A tool_use re-delivered by a later streamed chunk maps to the later
    chunk, whose usage is the most complete.
    """
    index: dict[str, AssistantEvent] = {}
    for event in assistant_events:
        for block in event.tool_uses:
            index[block.id] = event
    return MappingProxyType(index)


def build_tool_scope_index(
    assistant_events: Iterable[AssistantEvent],
) -> Mapping[str, str]:
    """Map each tool_use id to the scope of the agent that invoked it."""
    index: dict[str, str] = {}
    for event in assistant_events:
        for block in event.tool_uses:
            index[block.id] = event.scope_id
    return MappingProxyType(index)


def build_task_subagent_index(
    events: Iterable[SessionEvent],
) -> Mapping[str, str]:
    """Map Task tool_use ids to the agent id of the subagent they spawned.

    Two sources, in precedence order: progress events carrying
    ``data.agentId`` for a tool invocation, then ``toolUseResult.agentId``
    on the user event answering it. Progress records are applied first
    across the whole session so they are never shadowed by a result
    that happens to come earlier.
    """
    events = list(events)
    index: dict[str, str] = {}

    for event in events:
        if not isinstance(event, ProgressEvent):
            continue
        tool_use_id = event.related_tool_use_id
        agent_id = event.data.get("agentId")
        if tool_use_id and isinstance(agent_id, str) and tool_use_id not in index:
            index[tool_use_id] = agent_id

    for event in events:
        if not isinstance(event, UserEvent):
            continue
        meta = event.tool_use_result
        agent_id = meta.get("agentId") if isinstance(meta, dict) else None
        if not isinstance(agent_id, str):
            continue
        for result in event.tool_results:
            if result.tool_use_id and result.tool_use_id not in index:
                index[result.tool_use_id] = agent_id

    return MappingProxyType(index)


def build_agent_by_uuid_index(
    events: Iterable[SessionEvent],
) -> Mapping[str, str]:
    """Map uuids of sidechain events to their agent id.

    Each sidechain event with an agent id is indexed under its own uuid
    and under its parentUuid, since a compaction's logicalParentUuid may
    name either.
    """
    index: dict[str, str] = {}
    for event in events:
        if not event.is_sidechain or not event.agent_id:
            continue
        for key in (event.uuid, event.parent_uuid):
            if key and key not in index:
                index[key] = event.agent_id
    return MappingProxyType(index)


def resolve_compaction_agent(
    event: SystemEvent, agent_by_uuid: Mapping[str, str]
) -> Optional[str]:
    """Agent that performed a compaction, through its logicalParentUuid."""
    if event.logical_parent_uuid:
        return agent_by_uuid.get(event.logical_parent_uuid)
    return None


def resolve_compaction_scope(
    event: SystemEvent, agent_by_uuid: Mapping[str, str]
) -> str:
    if not event.is_sidechain:
        return MAIN_SCOPE
    return (
        resolve_compaction_agent(event, agent_by_uuid)
        or event.agent_id
        or UNKNOWN_SCOPE
    )
