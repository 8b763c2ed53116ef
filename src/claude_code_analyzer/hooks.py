"""In-memory store for hook events posted by Claude Code hooks."""

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .parser import parse_jsonl_file

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


@dataclass
class HookSessionSummary:
    session_id: str
    event_count: int
    last_event: Optional[str]


class HookEventStore:
    """Hook payloads grouped by session id.

    The store is an ordinary object owned by whoever creates it; nothing
    is shared between instances.
    """

    def __init__(self):
        self._sessions: dict[str, list[dict]] = {}

    def record(self, payload: dict) -> int:
        """Append one hook payload; returns the session's new event count.

        Raises:
            ValueError: If the payload is not a JSON object.
        """
        if not isinstance(payload, dict):
            raise ValueError("Hook event must be a JSON object")

        session_id = payload.get("session_id") or DEFAULT_SESSION_ID
        event = dict(payload)
        if not event.get("timestamp"):
            event["timestamp"] = datetime.now(timezone.utc).isoformat()

        events = self._sessions.setdefault(session_id, [])
        events.append(event)
        logger.debug(
            "Hook %s -> session %s (%d events)",
            event.get("tool_name", "unknown"),
            session_id[:8],
            len(events),
        )
        return len(events)

    def get_session(self, session_id: str) -> Optional[list[dict]]:
        events = self._sessions.get(session_id)
        return list(events) if events is not None else None

    def list_sessions(self) -> list[HookSessionSummary]:
        return [
            HookSessionSummary(
                session_id=session_id,
                event_count=len(events),
                last_event=events[-1].get("timestamp") if events else None,
            )
            for session_id, events in self._sessions.items()
        ]

    def summarize_tools(self, session_id: str) -> dict[str, int]:
        """Event count per tool name for one session."""
        counts: Counter = Counter()
        for event in self._sessions.get(session_id, []):
            counts[event.get("tool_name") or "unknown"] += 1
        return dict(counts)

    def clear(self) -> None:
        self._sessions.clear()


def load_hook_log(path: Path, store: HookEventStore) -> int:
    """Record every object of a JSONL hook log; returns how many were stored."""
    loaded = 0
    for entry in parse_jsonl_file(Path(path)):
        try:
            store.record(entry)
        except ValueError:
            logger.debug("Skipping non-object hook entry: %s", json.dumps(entry)[:80])
            continue
        loaded += 1
    return loaded
