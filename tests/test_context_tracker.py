"""Tests for the context tracker."""

import pytest

from claude_code_analyzer.analyzer.context_tracker import (
    analyze_context,
    dedupe_assistant_events,
    detect_heuristic_compactions,
)
from claude_code_analyzer.models import TokenTurn

from tests.fixtures.session_fixtures import (
    assistant,
    build_tree,
    small_session_records,
    system,
    text_block,
    ts,
    usage,
)


def turn_record(uuid, seconds, total, request_id=None, sidechain=False, agent_id=None):
    """Assistant record whose usage totals ``total`` (all as input)."""
    return assistant(
        uuid,
        ts(seconds),
        [text_block("...")],
        request_id=request_id or f"req_{uuid}",
        usage_=usage(input_tokens=total),
        sidechain=sidechain,
        agent_id=agent_id,
    )


def boundary_record(uuid, seconds, pre_tokens=None, trigger="auto", **kwargs):
    metadata = {"trigger": trigger}
    if pre_tokens is not None:
        metadata["preTokens"] = pre_tokens
    return system(uuid, ts(seconds), "compact_boundary", compact_metadata=metadata, **kwargs)


class TestDedupe:
    def test_small_session_has_four_turns(self):
        result = analyze_context(build_tree(small_session_records()))
        real = [t for t in result.token_turns if not t.is_reset]
        assert len(real) == 4

    def test_keeps_last_usage_and_earliest_timestamp(self):
        result = analyze_context(build_tree(small_session_records()))
        first = result.token_turns[0]
        assert first.output_tokens == 80
        assert first.total_tokens == 680
        assert first.timestamp == ts(1)

    def test_group_collapses_to_one_entry(self):
        tree = build_tree(
            [
                assistant("a1", ts(1), [], request_id="r", usage_=usage(10, 0, 0, 1)),
                assistant("a2", ts(2), [], request_id="r", usage_=usage(10, 0, 0, 5)),
                assistant("a3", ts(3), [], request_id="r", usage_=usage(10, 0, 0, 9)),
            ]
        )
        deduped = dedupe_assistant_events(tree.get_assistant_events())
        assert len(deduped) == 1
        event, timestamp = deduped[0]
        assert event.uuid == "a3"
        assert timestamp == ts(1)

    def test_falls_back_to_uuid(self):
        tree = build_tree(
            [
                assistant("a1", ts(1), [], usage_=usage(10)),
                assistant("a2", ts(2), [], usage_=usage(20)),
            ]
        )
        assert len(dedupe_assistant_events(tree.get_assistant_events())) == 2


class TestSummaryStats:
    def test_peak_and_output(self):
        result = analyze_context(build_tree(small_session_records()))
        assert result.peak_tokens == 990
        assert result.total_output_tokens == 170
        assert result.compaction_events == []

    def test_percent_of_limit(self):
        result = analyze_context(build_tree(small_session_records()), context_limit=1000)
        assert [t.percent_of_limit for t in result.token_turns] == [68.0, 75.0, 99.0, 98.0]

    def test_percent_omitted_without_limit(self):
        result = analyze_context(build_tree(small_session_records()))
        assert all(t.percent_of_limit is None for t in result.token_turns)

    def test_scope_ids(self):
        tree = build_tree(
            [
                turn_record("a1", 1, 100),
                turn_record("a2", 2, 100, sidechain=True, agent_id="agent_x"),
                turn_record("a3", 3, 100, sidechain=True),
            ]
        )
        result = analyze_context(tree)
        assert [t.scope_id for t in result.token_turns] == ["main", "agent_x", "unknown"]

    def test_idempotent(self):
        tree = build_tree(small_session_records())
        assert analyze_context(tree, context_limit=1000) == analyze_context(tree, context_limit=1000)


class TestHeuristicCompaction:
    def test_detects_sharp_drop(self):
        tree = build_tree([turn_record("a1", 1, 1000), turn_record("a2", 2, 200)])
        result = analyze_context(tree)
        assert len(result.compaction_events) == 1
        compaction = result.compaction_events[0]
        assert compaction.after_turn_index == 0
        assert compaction.tokens_before == 1000
        assert compaction.tokens_after == 200
        assert compaction.tokens_freed == 800
        assert compaction.source == "heuristic"
        assert compaction.timestamp == ts(2)

    def test_small_drop_is_not_compaction(self):
        tree = build_tree([turn_record("a1", 1, 1000), turn_record("a2", 2, 800)])
        assert analyze_context(tree).compaction_events == []

    def test_first_turn_never_flagged(self):
        tree = build_tree([turn_record("a1", 1, 0)])
        assert analyze_context(tree).compaction_events == []

    def test_compares_against_previous_nonzero_total(self):
        turns = [
            TokenTurn(0, ts(1), "main", 1000, 0, 0, 0, 1000),
            TokenTurn(1, ts(2), "main", 0, 0, 0, 0, 0),
            TokenTurn(2, ts(3), "main", 900, 0, 0, 0, 900),
        ]
        detected = detect_heuristic_compactions(turns)
        assert len(detected) == 1
        assert detected[0][0].tokens_after == 0

    def test_scopes_are_compared_separately(self):
        tree = build_tree(
            [
                turn_record("a1", 1, 1000),
                turn_record("s1", 2, 100, sidechain=True, agent_id="agent_x"),
                turn_record("a2", 3, 1100),
            ]
        )
        assert analyze_context(tree).compaction_events == []

    def test_ratio_is_configurable(self):
        tree = build_tree([turn_record("a1", 1, 1000), turn_record("a2", 2, 800)])
        result = analyze_context(tree, drop_ratio=0.9)
        assert len(result.compaction_events) == 1


class TestBoundaryCompaction:
    def records(self):
        return [
            turn_record("a1", 1, 1000),
            boundary_record("c1", 2, pre_tokens=1200),
            turn_record("a2", 3, 300),
        ]

    def test_auto_prefers_boundary(self):
        result = analyze_context(build_tree(self.records()))
        assert len(result.compaction_events) == 1
        compaction = result.compaction_events[0]
        assert compaction.source == "boundary"
        assert compaction.trigger == "auto"
        assert compaction.tokens_before == 1200
        assert compaction.tokens_after == 300
        assert compaction.tokens_freed == 900
        assert compaction.after_turn_index == 0
        assert compaction.scope_id == "main"

    def test_reset_turn_inserted(self):
        result = analyze_context(build_tree(self.records()))
        assert [t.is_reset for t in result.token_turns] == [False, True, False]
        reset = result.token_turns[1]
        assert reset.turn_index == -1
        assert reset.total_tokens == 0
        assert reset.timestamp == ts(2)

    def test_both_keeps_heuristic_too(self):
        result = analyze_context(build_tree(self.records()), compaction_mode="both")
        assert sorted(c.source for c in result.compaction_events) == ["boundary", "heuristic"]

    def test_explicit_only(self):
        tree = build_tree(self.records() + [turn_record("a3", 4, 1000), turn_record("a4", 5, 10)])
        result = analyze_context(tree, compaction_mode="explicit")
        assert [c.source for c in result.compaction_events] == ["boundary"]

    def test_heuristic_only_has_no_reset_turns(self):
        result = analyze_context(build_tree(self.records()), compaction_mode="heuristic")
        assert [c.source for c in result.compaction_events] == ["heuristic"]
        assert not any(t.is_reset for t in result.token_turns)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            analyze_context(build_tree(self.records()), compaction_mode="sometimes")

    def test_pre_tokens_fall_back_to_previous_turn(self):
        records = [
            turn_record("a1", 1, 1000),
            boundary_record("c1", 2, pre_tokens=None, trigger="manual"),
        ]
        compaction = analyze_context(build_tree(records)).compaction_events[0]
        assert compaction.tokens_before == 1000
        assert compaction.tokens_after == 0
        assert compaction.trigger == "manual"

    def test_sidechain_boundary_resolved_through_logical_parent(self):
        records = [
            turn_record("a1", 1, 1000),
            turn_record("s1", 1.5, 800, sidechain=True, agent_id="agent_x"),
            boundary_record("c1", 2, sidechain=True, logical_parent="s1"),
            turn_record("s2", 3, 100, sidechain=True, agent_id="agent_x"),
            turn_record("a2", 4, 1100),
        ]
        result = analyze_context(build_tree(records))
        assert len(result.compaction_events) == 1
        compaction = result.compaction_events[0]
        assert compaction.scope_id == "agent_x"
        assert compaction.tokens_before == 800
        assert compaction.tokens_after == 100

    def test_unattributed_sidechain_boundary_explains_subagent_drop(self):
        records = [
            turn_record("s1", 1, 800, sidechain=True, agent_id="agent_x"),
            boundary_record("c1", 2, sidechain=True),
            turn_record("s2", 3, 100, sidechain=True, agent_id="agent_x"),
        ]
        result = analyze_context(build_tree(records))
        assert [(c.source, c.scope_id) for c in result.compaction_events] == [
            ("boundary", "unknown")
        ]

    def test_turns_sorted_by_timestamp(self):
        result = analyze_context(build_tree(self.records()))
        stamps = [t.timestamp for t in result.token_turns]
        assert stamps == sorted(stamps)
