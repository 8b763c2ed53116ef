"""Token and context-window consumption over the course of a session."""

from dataclasses import dataclass, field
from typing import Optional

from ..models import AssistantEvent, CompactionEvent, SystemEvent, TokenTurn
from ..tree import SessionTree
from .correlation import build_agent_by_uuid_index, resolve_compaction_scope
from .utils import round_half_up

DEFAULT_DROP_RATIO = 0.7

# How explicit compact_boundary events and heuristic ratio drops combine:
#   auto      - boundaries always; drops only where no boundary explains them
#   explicit  - boundaries only
#   heuristic - drops only, no synthetic reset turns
#   both      - everything, unfiltered
COMPACTION_MODES = ("auto", "explicit", "heuristic", "both")


@dataclass
class ContextTrackerResult:
    token_turns: list[TokenTurn] = field(default_factory=list)
    compaction_events: list[CompactionEvent] = field(default_factory=list)
    peak_tokens: int = 0
    total_output_tokens: int = 0


@dataclass
class _Boundary:
    timestamp: str
    scope_id: str
    event: SystemEvent


def dedupe_assistant_events(
    events: list[AssistantEvent],
) -> list[tuple[AssistantEvent, str]]:
    """Collapse streamed deliveries of one API call into a single turn.

    Events sharing a requestId (uuid when absent) are replaced by the last
    one received, whose usage is cumulative, at the position of the first.
    Returns (event, earliest timestamp of the group) pairs.
    """
    positions: dict[str, int] = {}
    deduped: list[list] = []

    for event in events:
        key = event.turn_key
        if key is None:
            deduped.append([event, event.timestamp or ""])
            continue
        if key in positions:
            slot = deduped[positions[key]]
            slot[0] = event
            if event.timestamp and (not slot[1] or event.timestamp < slot[1]):
                slot[1] = event.timestamp
        else:
            positions[key] = len(deduped)
            deduped.append([event, event.timestamp or ""])

    return [(event, timestamp) for event, timestamp in deduped]


def _percent(total: int, context_limit: Optional[int]) -> Optional[float]:
    if not context_limit:
        return None
    return round_half_up(total / context_limit * 100, 1)


def _collect_boundaries(tree: SessionTree) -> list[_Boundary]:
    agent_by_uuid = build_agent_by_uuid_index(tree.events)
    boundaries = []
    for event in tree.get_chronological_events():
        if isinstance(event, SystemEvent) and event.is_compact_boundary:
            boundaries.append(
                _Boundary(
                    timestamp=event.timestamp,
                    scope_id=resolve_compaction_scope(event, agent_by_uuid),
                    event=event,
                )
            )
    return boundaries


def _boundary_applies(boundary: _Boundary, scope_id: str) -> bool:
    if boundary.scope_id == scope_id:
        return True
    # A sidechain boundary we could not attribute may belong to any subagent
    return boundary.scope_id == "unknown" and scope_id != "main"


def detect_heuristic_compactions(
    turns: list[TokenTurn], drop_ratio: float = DEFAULT_DROP_RATIO
) -> list[tuple[CompactionEvent, str]]:
    """Find sharp drops in total tokens between consecutive turns of a scope.

    ``turns`` must be real turns in chronological order. Returns each
    event with the timestamp of the turn it is compared against.
    """
    detected = []
    previous_by_scope: dict[str, TokenTurn] = {}

    for turn in turns:
        previous = previous_by_scope.get(turn.scope_id)
        if previous is not None and turn.total_tokens < previous.total_tokens * drop_ratio:
            detected.append(
                (
                    CompactionEvent(
                        after_turn_index=previous.turn_index,
                        tokens_before=previous.total_tokens,
                        tokens_after=turn.total_tokens,
                        tokens_freed=previous.total_tokens - turn.total_tokens,
                        timestamp=turn.timestamp,
                        scope_id=turn.scope_id,
                        source="heuristic",
                    ),
                    previous.timestamp,
                )
            )
        if turn.total_tokens > 0:
            previous_by_scope[turn.scope_id] = turn

    return detected


def _boundary_compaction(boundary: _Boundary, turns: list[TokenTurn]) -> CompactionEvent:
    in_scope = [t for t in turns if _boundary_applies(boundary, t.scope_id)]
    before = [t for t in in_scope if t.timestamp <= boundary.timestamp]
    after = [t for t in in_scope if t.timestamp > boundary.timestamp]
    previous = before[-1] if before else None
    following = after[0] if after else None

    metadata = boundary.event.compact_metadata
    if metadata is not None and metadata.pre_tokens is not None:
        tokens_before = metadata.pre_tokens
    else:
        tokens_before = previous.total_tokens if previous else 0
    tokens_after = following.total_tokens if following else 0

    return CompactionEvent(
        after_turn_index=previous.turn_index if previous else -1,
        tokens_before=tokens_before,
        tokens_after=tokens_after,
        tokens_freed=max(tokens_before - tokens_after, 0),
        timestamp=boundary.timestamp,
        scope_id=boundary.scope_id,
        source="boundary",
        trigger=metadata.trigger if metadata else None,
    )


def analyze_context(
    tree: SessionTree,
    context_limit: Optional[int] = None,
    drop_ratio: float = DEFAULT_DROP_RATIO,
    compaction_mode: str = "auto",
) -> ContextTrackerResult:
    """Build the token-turn series and locate compactions.

    Args:
        tree: Session to analyze
        context_limit: Context window size; enables percent_of_limit
        drop_ratio: A turn below this fraction of the previous turn's
            total (same scope) is treated as a compaction
        compaction_mode: One of COMPACTION_MODES

    Raises:
        ValueError: If compaction_mode is not recognized.
    """
    if compaction_mode not in COMPACTION_MODES:
        raise ValueError(
            f"Unknown compaction mode {compaction_mode!r}; "
            f"expected one of {', '.join(COMPACTION_MODES)}"
        )

    result = ContextTrackerResult()
    deduped = dedupe_assistant_events(tree.get_assistant_events())

    turns: list[TokenTurn] = []
    for index, (event, timestamp) in enumerate(deduped):
        usage = event.usage
        total = usage.total
        result.total_output_tokens += usage.output_tokens
        result.peak_tokens = max(result.peak_tokens, total)
        turns.append(
            TokenTurn(
                turn_index=index,
                timestamp=timestamp,
                scope_id=event.scope_id,
                input_tokens=usage.input_tokens,
                cache_creation_tokens=usage.cache_creation_input_tokens,
                cache_read_tokens=usage.cache_read_input_tokens,
                output_tokens=usage.output_tokens,
                total_tokens=total,
                percent_of_limit=_percent(total, context_limit),
            )
        )

    chronological_turns = sorted(turns, key=lambda t: t.timestamp)
    use_boundaries = compaction_mode != "heuristic"
    use_heuristic = compaction_mode != "explicit"

    boundaries = _collect_boundaries(tree) if use_boundaries else []
    compactions = [_boundary_compaction(b, chronological_turns) for b in boundaries]

    if use_heuristic:
        for compaction, previous_timestamp in detect_heuristic_compactions(
            chronological_turns, drop_ratio
        ):
            explained = compaction_mode == "auto" and any(
                _boundary_applies(b, compaction.scope_id)
                and previous_timestamp < b.timestamp <= compaction.timestamp
                for b in boundaries
            )
            if not explained:
                compactions.append(compaction)

    # Reset turns make the running total drop at the boundary itself
    # instead of at the next API call.
    for boundary in boundaries:
        turns.append(
            TokenTurn(
                turn_index=-1,
                timestamp=boundary.timestamp,
                scope_id=boundary.scope_id,
                input_tokens=0,
                cache_creation_tokens=0,
                cache_read_tokens=0,
                output_tokens=0,
                total_tokens=0,
                percent_of_limit=_percent(0, context_limit),
                is_reset=True,
            )
        )

    result.token_turns = sorted(turns, key=lambda t: t.timestamp)
    result.compaction_events = sorted(compactions, key=lambda c: c.timestamp)
    return result
