"""Builders for raw JSONL session records used across tests."""

import json
from pathlib import Path
from typing import Optional

from claude_code_analyzer.parser import parse_event
from claude_code_analyzer.tree import SessionTree

SESSION_ID = "test-session"


def ts(seconds: float) -> str:
    """ISO timestamp ``seconds`` after 2025-01-01T00:00:00Z (millisecond precision)."""
    whole = int(seconds)
    millis = int(round((seconds - whole) * 1000))
    minutes, secs = divmod(whole, 60)
    hours, minutes = divmod(minutes, 60)
    return f"2025-01-01T{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}Z"


def usage(
    input_tokens: int = 0,
    cache_creation: int = 0,
    cache_read: int = 0,
    output_tokens: int = 0,
) -> dict:
    return {
        "input_tokens": input_tokens,
        "cache_creation_input_tokens": cache_creation,
        "cache_read_input_tokens": cache_read,
        "output_tokens": output_tokens,
    }


def assistant(
    uuid: str,
    timestamp: str,
    content: list,
    parent: Optional[str] = None,
    request_id: Optional[str] = None,
    usage_: Optional[dict] = None,
    sidechain: bool = False,
    agent_id: Optional[str] = None,
    message_id: Optional[str] = None,
    cwd: Optional[str] = None,
) -> dict:
    record = {
        "type": "assistant",
        "uuid": uuid,
        "parentUuid": parent,
        "timestamp": timestamp,
        "sessionId": SESSION_ID,
        "isSidechain": sidechain,
        "message": {
            "role": "assistant",
            "model": "claude-sonnet-4-20250514",
            "content": content,
            "usage": usage_ or usage(),
        },
    }
    if request_id:
        record["requestId"] = request_id
    if agent_id:
        record["agentId"] = agent_id
    if message_id:
        record["message"]["id"] = message_id
    if cwd:
        record["cwd"] = cwd
    return record


def user(
    uuid: str,
    timestamp: str,
    content,
    parent: Optional[str] = None,
    sidechain: bool = False,
    agent_id: Optional[str] = None,
    tool_use_result=None,
) -> dict:
    record = {
        "type": "user",
        "uuid": uuid,
        "parentUuid": parent,
        "timestamp": timestamp,
        "sessionId": SESSION_ID,
        "isSidechain": sidechain,
        "message": {"role": "user", "content": content},
    }
    if agent_id:
        record["agentId"] = agent_id
    if tool_use_result is not None:
        record["toolUseResult"] = tool_use_result
    return record


def progress(
    uuid: str,
    timestamp: str,
    data: dict,
    parent_tool_use_id: Optional[str] = None,
    tool_use_id: Optional[str] = None,
    sidechain: bool = False,
) -> dict:
    record = {
        "type": "progress",
        "uuid": uuid,
        "parentUuid": None,
        "timestamp": timestamp,
        "sessionId": SESSION_ID,
        "isSidechain": sidechain,
        "data": data,
    }
    if parent_tool_use_id:
        record["parentToolUseID"] = parent_tool_use_id
    if tool_use_id:
        record["toolUseID"] = tool_use_id
    return record


def system(
    uuid: str,
    timestamp: str,
    subtype: str,
    content: Optional[str] = None,
    sidechain: bool = False,
    logical_parent: Optional[str] = None,
    compact_metadata: Optional[dict] = None,
    duration_ms: Optional[int] = None,
    agent_id: Optional[str] = None,
) -> dict:
    record = {
        "type": "system",
        "uuid": uuid,
        "parentUuid": None,
        "timestamp": timestamp,
        "sessionId": SESSION_ID,
        "isSidechain": sidechain,
        "subtype": subtype,
    }
    if content is not None:
        record["content"] = content
    if logical_parent:
        record["logicalParentUuid"] = logical_parent
    if compact_metadata is not None:
        record["compactMetadata"] = compact_metadata
    if duration_ms is not None:
        record["durationMs"] = duration_ms
    if agent_id:
        record["agentId"] = agent_id
    return record


def thinking_block(text: str) -> dict:
    return {"type": "thinking", "thinking": text, "signature": "sig"}


def text_block(text: str) -> dict:
    return {"type": "text", "text": text}


def tool_use_block(tool_id: str, name: str, tool_input: Optional[dict] = None) -> dict:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": tool_input or {}}


def tool_result_block(tool_id: str, content="ok", is_error: bool = False) -> dict:
    block = {"type": "tool_result", "tool_use_id": tool_id, "content": content}
    if is_error:
        block["is_error"] = True
    return block


def small_session_records() -> list[dict]:
    """A short main-thread session: thinking, a Read, an Edit and a reply.

    Five assistant records, two of which are streamed deliveries of
    ``req_1``, so the session has four API turns.
    """
    return [
        {
            "type": "file-history-snapshot",
            "messageId": "msg_snap",
            "snapshot": {"trackedFileBackups": {}},
            "isSnapshotUpdate": False,
        },
        user("u1", ts(0), "Fix the bug in test.ts"),
        assistant(
            "a1",
            ts(1),
            [thinking_block("Let me look at the file first.")],
            parent="u1",
            request_id="req_1",
            usage_=usage(100, 500, 0, 50),
        ),
        assistant(
            "a2",
            ts(1.5),
            [text_block("I'll read the file.")],
            parent="a1",
            request_id="req_1",
            usage_=usage(100, 500, 0, 80),
        ),
        assistant(
            "a3",
            ts(2),
            [tool_use_block("tool_1", "Read", {"file_path": "/tmp/test.ts"})],
            parent="a2",
            request_id="req_2",
            usage_=usage(120, 0, 600, 30),
        ),
        user(
            "u2",
            ts(3),
            [tool_result_block("tool_1", "const x = 1;\nconst y = 2;")],
            parent="a3",
        ),
        assistant(
            "a4",
            ts(4),
            [
                tool_use_block(
                    "tool_2",
                    "Edit",
                    {"file_path": "/tmp/test.ts", "old_string": "x = 1", "new_string": "x = 2"},
                )
            ],
            parent="u2",
            request_id="req_3",
            usage_=usage(150, 200, 600, 40),
        ),
        user("u3", ts(5), [tool_result_block("tool_2", "File updated")], parent="a4"),
        assistant(
            "a5",
            ts(6),
            [text_block("Fixed the bug.")],
            parent="u3",
            request_id="req_4",
            usage_=usage(160, 0, 800, 20),
        ),
    ]


def subagent_session_records() -> list[dict]:
    """Main thread spawns a Task; the subagent reads a skill file."""
    return [
        user("u1", ts(0), "Use a subagent to inspect the skills"),
        assistant(
            "a1",
            ts(1),
            [tool_use_block("task_1", "Task", {"description": "inspect", "prompt": "Go"})],
            parent="u1",
            request_id="req_main_1",
            usage_=usage(100, 5000, 0, 20),
        ),
        progress(
            "p1",
            ts(1.2),
            {"type": "agent_progress", "agentId": "agent_abc123"},
            parent_tool_use_id="task_1",
        ),
        user(
            "s_u1",
            ts(1.3),
            "Go",
            sidechain=True,
            agent_id="agent_abc123",
        ),
        assistant(
            "s_a1",
            ts(1.5),
            [tool_use_block("sub_tool_1", "Read", {"file_path": "/repo/.claude/skills/pdf/SKILL.md"})],
            parent="s_u1",
            request_id="req_sub_1",
            usage_=usage(50, 3000, 0, 10),
            sidechain=True,
            agent_id="agent_abc123",
        ),
        progress(
            "p2",
            ts(1.6),
            {
                "type": "hook_progress",
                "hookEvent": "PreToolUse",
                "hookName": "PreToolUse:Read",
                "command": "echo pre",
            },
            parent_tool_use_id="sub_tool_1",
            sidechain=True,
        ),
        progress(
            "p3",
            ts(1.6),
            {
                "type": "hook_progress",
                "hookEvent": "PreToolUse",
                "hookName": "PreToolUse:Read",
                "command": "callback",
            },
            parent_tool_use_id="sub_tool_1",
            sidechain=True,
        ),
        user(
            "s_u2",
            ts(2),
            [tool_result_block("sub_tool_1", "# PDF skill\n" + "x" * 388)],
            parent="s_a1",
            sidechain=True,
            agent_id="agent_abc123",
        ),
        user(
            "u2",
            ts(2.2),
            [tool_result_block("task_1", [text_block("done")])],
            parent="a1",
            tool_use_result={"agentId": "agent_abc123", "status": "completed"},
        ),
    ]


def build_tree(records: list[dict]) -> SessionTree:
    events = [parse_event(record) for record in records]
    return SessionTree(e for e in events if e is not None)


def write_jsonl(path: Path, records: list) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")
    return path
