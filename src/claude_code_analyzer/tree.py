"""Session tree: identity indices, chronology and tool call correlation."""

from typing import Iterable, Optional

from .models import (
    AssistantEvent,
    SessionEvent,
    ToolPair,
    ToolUseBlock,
    UserEvent,
)


class SessionTree:
    """Read-only index over the events of one session bundle.

    Everything is computed once at construction; accessors return fresh
    lists so that callers cannot disturb each other's views.
    """

    def __init__(self, events: Iterable[SessionEvent]):
        self._events: list[SessionEvent] = list(events)
        self._by_uuid: dict[str, SessionEvent] = {}
        self._children: dict[str, list[str]] = {}
        self._roots: list[str] = []

        for event in self._events:
            if not event.uuid:
                continue
            self._by_uuid[event.uuid] = event
            if event.parent_uuid is None:
                self._roots.append(event.uuid)
            else:
                self._children.setdefault(event.parent_uuid, []).append(event.uuid)

        # sorted() is stable, so equal timestamps keep input order
        self._chronological = sorted(
            (e for e in self._events if e.timestamp),
            key=lambda e: e.timestamp,
        )
        self._tool_pairs = self._pair_tool_calls()

    @property
    def events(self) -> list[SessionEvent]:
        return list(self._events)

    def get_event(self, uuid: str) -> Optional[SessionEvent]:
        return self._by_uuid.get(uuid)

    def get_roots(self) -> list[SessionEvent]:
        return [self._by_uuid[uuid] for uuid in self._roots]

    def get_children(self, uuid: str) -> list[SessionEvent]:
        return [self._by_uuid[child] for child in self._children.get(uuid, [])]

    def get_chronological_events(self) -> list[SessionEvent]:
        """Events with a timestamp, oldest first."""
        return list(self._chronological)

    def get_tool_pairs(self) -> list[ToolPair]:
        return list(self._tool_pairs)

    def get_events_of_type(self, event_type: str) -> list[SessionEvent]:
        return [e for e in self._events if e.type == event_type]

    def get_assistant_events(self) -> list[AssistantEvent]:
        return [e for e in self._events if isinstance(e, AssistantEvent)]

    def get_user_events(self) -> list[UserEvent]:
        return [e for e in self._events if isinstance(e, UserEvent)]

    def get_session_id(self) -> Optional[str]:
        for event in self._events:
            if event.session_id:
                return event.session_id
        return None

    def _pair_tool_calls(self) -> list[ToolPair]:
        """Match every tool_use with the first later tool_result naming it.

        Tool uses that never receive a result are appended at the end with
        ``tool_result=None``, in the order they were issued.
        """
        pairs: list[ToolPair] = []
        # dicts keep insertion order, which is the order tool uses were seen
        pending: dict[str, tuple[ToolUseBlock, AssistantEvent]] = {}
        # A streamed re-delivery of an answered tool_use must not reopen it
        answered: set[str] = set()

        for event in self._chronological:
            if isinstance(event, AssistantEvent):
                for block in event.tool_uses:
                    if block.id not in answered:
                        pending[block.id] = (block, event)
            elif isinstance(event, UserEvent):
                for result in event.tool_results:
                    match = pending.pop(result.tool_use_id, None)
                    if match is None:
                        continue
                    answered.add(result.tool_use_id)
                    block, assistant = match
                    pairs.append(
                        ToolPair(
                            tool_use=block,
                            tool_result=result,
                            assistant_timestamp=assistant.timestamp,
                            result_timestamp=event.timestamp,
                            assistant_uuid=assistant.uuid,
                            result_uuid=event.uuid,
                        )
                    )

        for block, assistant in pending.values():
            pairs.append(
                ToolPair(
                    tool_use=block,
                    tool_result=None,
                    assistant_timestamp=assistant.timestamp,
                    result_timestamp=None,
                    assistant_uuid=assistant.uuid,
                    result_uuid=None,
                )
            )

        return pairs
