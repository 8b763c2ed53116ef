"""Data models for Claude Code session analysis."""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Optional, Union

# Top-level record types the reader accepts
VALID_EVENT_TYPES = frozenset(
    {"user", "assistant", "system", "progress", "file-history-snapshot"}
)

MAIN_SCOPE = "main"
UNKNOWN_SCOPE = "unknown"

# Field metadata: drop the key from JSON output when the value is None
OMIT_NONE = {"omit_none": True}
# Field metadata: never serialize (raw source records)
INTERNAL = {"internal": True}


def optional_field(default: Any = None):
    """Declare an optional field that is left out of JSON when unset."""
    return field(default=default, metadata=OMIT_NONE)


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


@dataclass
class ThinkingBlock:
    """Extended-thinking block emitted by the assistant."""

    thinking: str
    signature: str = ""
    type: str = "thinking"


@dataclass
class TextBlock:
    """Plain text block (assistant reply or user text)."""

    text: str
    type: str = "text"


@dataclass
class ToolUseBlock:
    """A tool invocation requested by the assistant."""

    id: str
    name: str
    input: dict = field(default_factory=dict)
    type: str = "tool_use"


@dataclass
class ToolResultBlock:
    """The answer to a prior tool_use.

    ``content`` is kept exactly as recorded: a string, a list of blocks,
    or any other JSON value. Use ``to_display_text`` to render it.
    """

    tool_use_id: str
    content: Any = ""
    is_error: bool = False
    type: str = "tool_result"


@dataclass
class UnknownBlock:
    """Any block type the analyzers do not interpret (images, documents)."""

    type: str
    data: dict = field(default_factory=dict)


ContentBlock = Union[ThinkingBlock, TextBlock, ToolUseBlock, ToolResultBlock, UnknownBlock]


@dataclass
class Usage:
    """Token usage reported on an assistant message."""

    input_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return (
            self.input_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
            + self.output_tokens
        )


@dataclass
class CompactMetadata:
    trigger: Optional[str] = None
    pre_tokens: Optional[int] = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class BaseEvent:
    """Fields shared by every transcript record."""

    type: str = ""
    uuid: Optional[str] = None
    parent_uuid: Optional[str] = None
    timestamp: Optional[str] = None
    session_id: Optional[str] = None
    is_sidechain: bool = False
    agent_id: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False, metadata=INTERNAL)

    @property
    def scope_id(self) -> str:
        """Scope this event belongs to: main, its agent, or unknown."""
        if not self.is_sidechain:
            return MAIN_SCOPE
        return self.agent_id or UNKNOWN_SCOPE


@dataclass
class AssistantEvent(BaseEvent):
    type: str = "assistant"
    content: list = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    request_id: Optional[str] = None
    message_id: Optional[str] = None
    model: Optional[str] = None
    stop_reason: Optional[str] = None
    cwd: Optional[str] = None

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def turn_key(self) -> Optional[str]:
        """Identifier shared by streamed deliveries of one API call."""
        return self.request_id or self.uuid


@dataclass
class UserEvent(BaseEvent):
    type: str = "user"
    # Either the raw prompt string or a list of content blocks
    content: Union[str, list] = ""
    tool_use_result: Any = None
    cwd: Optional[str] = None

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        if isinstance(self.content, str):
            return []
        return [b for b in self.content if isinstance(b, ToolResultBlock)]


@dataclass
class SystemEvent(BaseEvent):
    type: str = "system"
    subtype: Optional[str] = None
    content: Optional[str] = None
    level: Optional[str] = None
    logical_parent_uuid: Optional[str] = None
    compact_metadata: Optional[CompactMetadata] = None
    duration_ms: Optional[int] = None

    @property
    def is_compact_boundary(self) -> bool:
        return self.subtype == "compact_boundary"


@dataclass
class ProgressEvent(BaseEvent):
    type: str = "progress"
    data: dict = field(default_factory=dict)
    parent_tool_use_id: Optional[str] = None
    tool_use_id: Optional[str] = None

    @property
    def data_type(self) -> Optional[str]:
        return self.data.get("type")

    @property
    def related_tool_use_id(self) -> Optional[str]:
        return self.parent_tool_use_id or self.tool_use_id


@dataclass
class FileHistorySnapshot(BaseEvent):
    type: str = "file-history-snapshot"
    message_id: Optional[str] = None
    snapshot: dict = field(default_factory=dict)
    is_snapshot_update: bool = False


SessionEvent = Union[AssistantEvent, UserEvent, SystemEvent, ProgressEvent, FileHistorySnapshot]


@dataclass(frozen=True)
class ToolPair:
    """A tool_use correlated with its tool_result (None while unanswered)."""

    tool_use: ToolUseBlock
    tool_result: Optional[ToolResultBlock]
    assistant_timestamp: Optional[str]
    result_timestamp: Optional[str]
    assistant_uuid: Optional[str]
    result_uuid: Optional[str]


# ---------------------------------------------------------------------------
# Derived analysis entities
# ---------------------------------------------------------------------------


@dataclass
class TimelineEntry:
    """One row of the reasoning chain."""

    type: str  # thinking, text, tool_use, tool_result
    timestamp: str
    content: str
    tool_name: Optional[str] = optional_field()
    tool_input: Optional[dict] = optional_field()
    tool_use_id: Optional[str] = optional_field()
    is_error: Optional[bool] = optional_field()
    ctx_spike_tokens: Optional[int] = optional_field()
    assistant_turn_id: Optional[str] = optional_field()


@dataclass
class ToolStats:
    name: str
    count: int = 0
    successes: int = 0
    failures: int = 0
    avg_duration_ms: Optional[int] = None
    attributed_input_tokens: float = 0.0
    attributed_cache_creation_tokens: float = 0.0
    attributed_cache_read_tokens: float = 0.0
    attributed_output_tokens: float = 0.0
    attributed_total_tokens: float = 0.0


@dataclass
class FileAccess:
    path: str
    reads: int = 0
    writes: int = 0
    edits: int = 0

    @property
    def total(self) -> int:
        return self.reads + self.writes + self.edits


@dataclass
class ToolPattern:
    sequence: list[str]
    count: int


@dataclass
class TokenTurn:
    """Token usage of one deduplicated assistant turn.

    Synthetic reset turns inserted at compaction boundaries carry
    ``turn_index == -1`` and all-zero counts.
    """

    turn_index: int
    timestamp: str
    scope_id: str
    input_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    output_tokens: int
    total_tokens: int
    percent_of_limit: Optional[float] = optional_field()
    is_reset: bool = False


@dataclass
class CompactionEvent:
    after_turn_index: int
    tokens_before: int
    tokens_after: int
    tokens_freed: int
    timestamp: str = ""
    scope_id: str = MAIN_SCOPE
    source: str = "heuristic"  # heuristic or boundary
    trigger: Optional[str] = optional_field()


@dataclass
class SkillFileImpact:
    file_path: str
    type: str  # claude-md, skill, config
    estimated_tokens: int
    cache_creation_spike: int


@dataclass
class NetworkRequestEntry:
    """A tool_use/tool_result pair as shown in the request table."""

    tool_use_id: str
    tool_name: str
    scope_id: str
    linked_subagent_id: Optional[str]
    start_timestamp: str
    end_timestamp: Optional[str]
    time_ms: Optional[int]
    ctx_spike_tokens: int
    is_error: bool
    tool_input: dict
    tool_result_content: Optional[str]


@dataclass
class NetworkTimelineEvent:
    """One row of the unified per-scope event timeline."""

    id: str
    kind: str  # tool_use, user_message, assistant_text, thinking, hook, system, compaction
    timestamp: str
    scope_id: str
    summary: str
    content: str
    # tool_use
    tool_name: Optional[str] = optional_field()
    tool_use_id: Optional[str] = optional_field()
    linked_subagent_id: Optional[str] = optional_field()
    time_ms: Optional[int] = optional_field()
    ctx_spike_tokens: Optional[int] = optional_field()
    is_error: Optional[bool] = optional_field()
    tool_input: Optional[dict] = optional_field()
    tool_result_content: Optional[str] = optional_field()
    tool_use_result: Optional[dict] = optional_field()
    # progress
    hook_event: Optional[str] = optional_field()
    hook_name: Optional[str] = optional_field()
    progress_type: Optional[str] = optional_field()
    # assistant usage
    input_tokens: Optional[int] = optional_field()
    output_tokens: Optional[int] = optional_field()
    cache_creation_tokens: Optional[int] = optional_field()
    cache_read_tokens: Optional[int] = optional_field()
    request_id: Optional[str] = optional_field()
    # system / compaction
    subtype: Optional[str] = optional_field()
    duration_ms: Optional[int] = optional_field()
    compact_trigger: Optional[str] = optional_field()
    pre_tokens: Optional[int] = optional_field()


@dataclass
class NetworkAgentScope:
    id: str
    label: str
    requests: list[NetworkRequestEntry] = field(default_factory=list)
    events: list[NetworkTimelineEvent] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Everything the single-session views need, JSON-serializable."""

    session_id: str
    session_start: str
    session_end: str
    total_events: int
    timeline: list[TimelineEntry] = field(default_factory=list)
    tool_stats: list[ToolStats] = field(default_factory=list)
    file_access: list[FileAccess] = field(default_factory=list)
    tool_patterns: list[ToolPattern] = field(default_factory=list)
    token_turns: list[TokenTurn] = field(default_factory=list)
    compaction_events: list[CompactionEvent] = field(default_factory=list)
    skill_impacts: list[SkillFileImpact] = field(default_factory=list)


# ---------------------------------------------------------------------------
# JSON serialization
# ---------------------------------------------------------------------------


def camel_case(name: str) -> str:
    """Convert a snake_case field name to the camelCase JSON key."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_json_dict(value: Any) -> Any:
    """Convert dataclass trees into plain JSON-ready structures.

    Dataclass field names become camelCase keys. Plain dicts (raw tool
    inputs, result metadata) are passed through with their keys intact.
    """
    if is_dataclass(value) and not isinstance(value, type):
        out = {}
        for f in fields(value):
            if f.metadata.get("internal"):
                continue
            item = getattr(value, f.name)
            if item is None and f.metadata.get("omit_none"):
                continue
            out[camel_case(f.name)] = to_json_dict(item)
        return out
    if isinstance(value, (list, tuple)):
        return [to_json_dict(item) for item in value]
    if isinstance(value, dict):
        return {key: to_json_dict(item) for key, item in value.items()}
    return value
