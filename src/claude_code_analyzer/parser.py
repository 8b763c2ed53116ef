"""Parse Claude Code JSONL session files into typed events."""

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .models import (
    VALID_EVENT_TYPES,
    AssistantEvent,
    CompactMetadata,
    FileHistorySnapshot,
    ProgressEvent,
    SessionEvent,
    SystemEvent,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UnknownBlock,
    Usage,
    UserEvent,
)

logger = logging.getLogger(__name__)

# Subagent transcripts live next to the main file: <dir>/<session-id>/subagents/
SUBAGENTS_DIR_NAME = "subagents"


def parse_jsonl_file(file_path: Path) -> Iterator[dict]:
    """Yield each JSON object from a JSONL file."""
    with open(file_path, "rb") as f:
        for line_number, raw in enumerate(f, 1):
            raw = raw.strip()
            if raw:
                try:
                    yield json.loads(raw.decode("utf-8"))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.debug("Skipping malformed line %d in %s", line_number, file_path)
                    continue


def _as_int(value) -> int:
    """Token counts arrive as ints but may be missing or null."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _as_str(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_content_block(block):
    """Build a typed content block from its JSON form."""
    if isinstance(block, str):
        return TextBlock(text=block)
    if not isinstance(block, dict):
        return UnknownBlock(type="unknown", data={"value": block})

    block_type = block.get("type")
    if block_type == "thinking":
        return ThinkingBlock(
            thinking=block.get("thinking") or "",
            signature=block.get("signature") or "",
        )
    if block_type == "text":
        return TextBlock(text=block.get("text") or "")
    if block_type == "tool_use":
        tool_input = block.get("input")
        return ToolUseBlock(
            id=block.get("id") or "",
            name=block.get("name") or "unknown",
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    if block_type == "tool_result":
        return ToolResultBlock(
            tool_use_id=block.get("tool_use_id") or "",
            content=block.get("content", ""),
            is_error=bool(block.get("is_error", False)),
        )
    return UnknownBlock(type=str(block_type or "unknown"), data=block)


def parse_content(content) -> list:
    """Parse a content array; anything else becomes an empty list."""
    if not isinstance(content, list):
        return []
    return [parse_content_block(block) for block in content]


def parse_usage(usage) -> Usage:
    if not isinstance(usage, dict):
        return Usage()
    return Usage(
        input_tokens=_as_int(usage.get("input_tokens")),
        cache_creation_input_tokens=_as_int(usage.get("cache_creation_input_tokens")),
        cache_read_input_tokens=_as_int(usage.get("cache_read_input_tokens")),
        output_tokens=_as_int(usage.get("output_tokens")),
    )


def _common_fields(entry: dict) -> dict:
    return {
        "uuid": _as_str(entry.get("uuid")),
        "parent_uuid": _as_str(entry.get("parentUuid")),
        "timestamp": _as_str(entry.get("timestamp")),
        "session_id": _as_str(entry.get("sessionId")),
        "is_sidechain": bool(entry.get("isSidechain", False)),
        "agent_id": _as_str(entry.get("agentId")),
        "raw": entry,
    }


def parse_event(entry) -> Optional[SessionEvent]:
    """Build a typed event from one JSONL record.

    Returns None for records that are not objects or whose ``type`` is not
    one of the session event types (summaries, queue operations, ...).
    """
    if not isinstance(entry, dict):
        return None
    entry_type = entry.get("type")
    if entry_type not in VALID_EVENT_TYPES:
        return None

    common = _common_fields(entry)
    message = entry.get("message")
    if not isinstance(message, dict):
        message = {}

    if entry_type == "assistant":
        return AssistantEvent(
            **common,
            content=parse_content(message.get("content")),
            usage=parse_usage(message.get("usage")),
            request_id=_as_str(entry.get("requestId")),
            message_id=_as_str(message.get("id")),
            model=_as_str(message.get("model")),
            stop_reason=_as_str(message.get("stop_reason")),
            cwd=_as_str(entry.get("cwd")),
        )

    if entry_type == "user":
        content = message.get("content", "")
        return UserEvent(
            **common,
            content=content if isinstance(content, str) else parse_content(content),
            tool_use_result=entry.get("toolUseResult"),
            cwd=_as_str(entry.get("cwd")),
        )

    if entry_type == "system":
        metadata = entry.get("compactMetadata")
        compact_metadata = None
        if isinstance(metadata, dict):
            pre_tokens = metadata.get("preTokens")
            compact_metadata = CompactMetadata(
                trigger=_as_str(metadata.get("trigger")),
                pre_tokens=_as_int(pre_tokens) if pre_tokens is not None else None,
            )
        duration = entry.get("durationMs")
        return SystemEvent(
            **common,
            subtype=_as_str(entry.get("subtype")),
            content=_as_str(entry.get("content")),
            level=_as_str(entry.get("level")),
            logical_parent_uuid=_as_str(entry.get("logicalParentUuid")),
            compact_metadata=compact_metadata,
            duration_ms=_as_int(duration) if duration is not None else None,
        )

    if entry_type == "progress":
        data = entry.get("data")
        return ProgressEvent(
            **common,
            data=data if isinstance(data, dict) else {},
            parent_tool_use_id=_as_str(entry.get("parentToolUseID")),
            tool_use_id=_as_str(entry.get("toolUseID")),
        )

    snapshot = entry.get("snapshot")
    return FileHistorySnapshot(
        **common,
        message_id=_as_str(entry.get("messageId")),
        snapshot=snapshot if isinstance(snapshot, dict) else {},
        is_snapshot_update=bool(entry.get("isSnapshotUpdate", False)),
    )


def read_jsonl(file_path: Path) -> list[SessionEvent]:
    """Read every session event from a JSONL file, in file order."""
    events = []
    for entry in parse_jsonl_file(file_path):
        event = parse_event(entry)
        if event is not None:
            events.append(event)
    return events


def find_subagent_files(file_path: Path) -> list[Path]:
    """List subagent transcripts belonging to a main session file."""
    file_path = Path(file_path)
    subagents_dir = file_path.parent / file_path.stem / SUBAGENTS_DIR_NAME
    if not subagents_dir.is_dir():
        return []
    return sorted(subagents_dir.glob("*.jsonl"))


def read_session_bundle(file_path: Path) -> list[SessionEvent]:
    """Read a main session file followed by all of its subagent files."""
    events = read_jsonl(file_path)
    for subagent_file in find_subagent_files(file_path):
        logger.debug("Loading subagent transcript %s", subagent_file)
        events.extend(read_jsonl(subagent_file))
    return events


@dataclass
class SessionEntry:
    """A session file available for analysis."""

    path: Path
    project: str  # raw encoded project directory name
    project_name: str
    session_id: str
    size: int
    mtime: float

    @property
    def session_key(self) -> str:
        return session_key_from_path(self.path)


def session_key_from_path(file_path: Path) -> str:
    """Opaque URL-safe key for a session file."""
    encoded = base64.urlsafe_b64encode(str(file_path).encode("utf-8"))
    return encoded.decode("ascii").rstrip("=")


def discover_sessions(projects_dir: Path) -> list[SessionEntry]:
    """Catalog all main session files in the projects directory.

    Subagent transcripts (inside ``<session>/subagents/``) are not listed;
    they are loaded as part of their parent's bundle. Newest first.
    """
    projects_dir = Path(projects_dir)
    if not projects_dir.is_dir():
        return []

    entries = []
    for project_dir in projects_dir.iterdir():
        if not project_dir.is_dir():
            continue
        for jsonl_file in project_dir.glob("*.jsonl"):
            try:
                stat = jsonl_file.stat()
            except OSError:
                continue
            entries.append(
                SessionEntry(
                    path=jsonl_file,
                    project=project_dir.name,
                    project_name=get_project_name_from_dir(project_dir.name),
                    session_id=jsonl_file.stem,
                    size=stat.st_size,
                    mtime=stat.st_mtime,
                )
            )

    entries.sort(key=lambda e: e.mtime, reverse=True)
    return entries


def get_project_name_from_dir(dir_name: str) -> str:
    """Extract a readable project name from a project directory name.

    Claude Code stores projects in folders like:
    - -home-user-projects-myproject -> myproject
    - -Users-name-Development-app -> app
    """
    prefixes_to_strip = [
        "-home-",
        "-mnt-c-Users-",
        "-mnt-c-users-",
        "-Users-",
    ]

    name = dir_name
    for prefix in prefixes_to_strip:
        if name.lower().startswith(prefix.lower()):
            name = name[len(prefix) :]
            break

    parts = name.split("-")

    # Common intermediate directories to skip
    skip_dirs = {
        "projects",
        "code",
        "repos",
        "src",
        "dev",
        "work",
        "documents",
        "development",
        "github",
        "git",
    }

    meaningful_parts = []
    found_project = False

    for i, part in enumerate(parts):
        if not part:
            continue
        # First part is the username when a common dir follows it
        if i == 0 and not found_project:
            remaining = [p.lower() for p in parts[i + 1 :]]
            if any(d in remaining for d in skip_dirs):
                continue
        if part.lower() in skip_dirs:
            found_project = True
            continue
        meaningful_parts.append(part)
        found_project = True

    if meaningful_parts:
        return "-".join(meaningful_parts)

    for part in reversed(parts):
        if part:
            return part
    return dir_name
