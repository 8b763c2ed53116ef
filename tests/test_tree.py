"""Tests for SessionTree indexing and tool pairing."""

from claude_code_analyzer.models import AssistantEvent, FileHistorySnapshot

from tests.fixtures.session_fixtures import (
    assistant,
    build_tree,
    small_session_records,
    tool_result_block,
    tool_use_block,
    ts,
    user,
)


class TestIndices:
    def test_uuid_index_and_roots(self):
        tree = build_tree(small_session_records())
        assert tree.get_event("a3").uuid == "a3"
        assert tree.get_event("missing") is None
        assert [e.uuid for e in tree.get_roots()] == ["u1"]

    def test_children(self):
        tree = build_tree(small_session_records())
        assert [e.uuid for e in tree.get_children("u1")] == ["a1"]
        assert tree.get_children("a5") == []

    def test_events_without_uuid_are_kept(self):
        tree = build_tree(small_session_records())
        assert len(tree.events) == 9
        snapshots = tree.get_events_of_type("file-history-snapshot")
        assert len(snapshots) == 1
        assert isinstance(snapshots[0], FileHistorySnapshot)

    def test_session_id(self):
        assert build_tree(small_session_records()).get_session_id() == "test-session"
        assert build_tree([]).get_session_id() is None

    def test_filtered_views(self):
        tree = build_tree(small_session_records())
        assert len(tree.get_assistant_events()) == 5
        assert all(isinstance(e, AssistantEvent) for e in tree.get_assistant_events())
        assert len(tree.get_user_events()) == 3

    def test_accessors_return_copies(self):
        tree = build_tree(small_session_records())
        tree.get_tool_pairs().clear()
        tree.get_chronological_events().clear()
        assert len(tree.get_tool_pairs()) == 2
        assert len(tree.get_chronological_events()) == 8


class TestChronology:
    def test_sorted_and_excludes_untimed(self):
        records = [
            user("u2", ts(5), "later"),
            user("u1", ts(1), "earlier"),
            {"type": "file-history-snapshot", "messageId": "m", "snapshot": {}},
        ]
        tree = build_tree(records)
        assert [e.uuid for e in tree.get_chronological_events()] == ["u1", "u2"]

    def test_ties_keep_input_order(self):
        records = [user("b", ts(1), "x"), user("a", ts(1), "y"), user("c", ts(0), "z")]
        tree = build_tree(records)
        assert [e.uuid for e in tree.get_chronological_events()] == ["c", "b", "a"]

    def test_monotonic(self):
        events = build_tree(small_session_records()).get_chronological_events()
        stamps = [e.timestamp for e in events]
        assert stamps == sorted(stamps)


class TestToolPairs:
    def test_pairs_read_and_edit(self):
        pairs = build_tree(small_session_records()).get_tool_pairs()
        assert [p.tool_use.name for p in pairs] == ["Read", "Edit"]
        read = pairs[0]
        assert read.tool_result.tool_use_id == "tool_1"
        assert read.assistant_timestamp == ts(2)
        assert read.result_timestamp == ts(3)
        assert read.assistant_uuid == "a3"
        assert read.result_uuid == "u2"

    def test_unanswered_tool_use_is_kept(self):
        records = [
            assistant("a1", ts(1), [tool_use_block("t1", "Bash", {"command": "ls"})]),
            assistant("a2", ts(2), [tool_use_block("t2", "Read", {"file_path": "/x"})]),
            user("u1", ts(3), [tool_result_block("t2", "contents")]),
        ]
        pairs = build_tree(records).get_tool_pairs()
        assert len(pairs) == 2
        assert pairs[0].tool_use.id == "t2"
        assert pairs[1].tool_use.id == "t1"
        assert pairs[1].tool_result is None
        assert pairs[1].result_timestamp is None

    def test_one_pair_per_tool_use_id(self):
        # The same tool_use re-delivered in a later streamed chunk, and a
        # duplicate result, still yield a single pair.
        block = tool_use_block("t1", "Grep", {"pattern": "foo"})
        records = [
            assistant("a1", ts(1), [block], request_id="r1"),
            user("u1", ts(2), [tool_result_block("t1", "match")]),
            assistant("a2", ts(2.5), [block], request_id="r1"),
            user("u2", ts(3), [tool_result_block("t1", "match again")]),
        ]
        pairs = build_tree(records).get_tool_pairs()
        assert len(pairs) == 1
        assert pairs[0].tool_result.content == "match"

    def test_result_without_tool_use_is_ignored(self):
        records = [user("u1", ts(1), [tool_result_block("orphan", "x")])]
        assert build_tree(records).get_tool_pairs() == []
