"""Tests for building and writing the combined analysis result."""

import json
import tempfile
from pathlib import Path

import pytest

from claude_code_analyzer.config import Config
from claude_code_analyzer.models import to_json_dict
from claude_code_analyzer.summary import (
    analyze_session_path,
    build_analysis_result,
    write_json_summary,
)

from tests.fixtures.session_fixtures import (
    build_tree,
    small_session_records,
    subagent_session_records,
    ts,
    write_jsonl,
)


class TestBuildAnalysisResult:
    def test_small_session(self):
        result = build_analysis_result(build_tree(small_session_records()))
        assert result.session_id == "test-session"
        assert result.session_start == ts(0)
        assert result.session_end == ts(6)
        assert result.total_events == 8
        assert len(result.tool_stats) == 2
        assert len(result.timeline) == 7
        assert len(result.token_turns) == 4
        assert result.compaction_events == []
        assert result.skill_impacts == []

    def test_default_config_sets_context_limit(self):
        result = build_analysis_result(build_tree(small_session_records()))
        assert result.token_turns[0].percent_of_limit == 0.3

    def test_config_overrides(self):
        cfg = Config(context_limit=None, pattern_min_count=1, pattern_window=2)
        result = build_analysis_result(build_tree(small_session_records()), cfg)
        assert result.token_turns[0].percent_of_limit is None
        assert [p.sequence for p in result.tool_patterns] == [["Read", "Edit"]]

    def test_empty_tree(self):
        result = build_analysis_result(build_tree([]))
        assert result.session_id == "unknown"
        assert result.session_start == ""
        assert result.total_events == 0

    def test_json_shape(self):
        data = to_json_dict(build_analysis_result(build_tree(small_session_records())))
        assert set(data) == {
            "sessionId",
            "sessionStart",
            "sessionEnd",
            "totalEvents",
            "timeline",
            "toolStats",
            "fileAccess",
            "toolPatterns",
            "tokenTurns",
            "compactionEvents",
            "skillImpacts",
        }
        assert data["timeline"][2]["toolInput"] == {"file_path": "/tmp/test.ts"}
        assert "toolName" not in data["timeline"][0]


class TestAnalyzeSessionPath:
    def test_bundle_includes_subagents(self):
        records = subagent_session_records()
        main_records = [r for r in records if not r.get("isSidechain")]
        sub_records = [r for r in records if r.get("isSidechain")]
        with tempfile.TemporaryDirectory() as tmpdir:
            main_file = write_jsonl(Path(tmpdir) / "sess.jsonl", main_records)
            write_jsonl(Path(tmpdir) / "sess" / "subagents" / "agent_abc123.jsonl", sub_records)

            analysis = analyze_session_path(main_file)
            assert [s.id for s in analysis.network.scopes] == ["main", "agent_abc123"]
            assert len(analysis.result.skill_impacts) == 1

            alone = analyze_session_path(main_file, bundle=False)
            assert [s.id for s in alone.network.scopes] == ["main"]

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            analyze_session_path(Path("/nonexistent/session.jsonl"))


class TestWriteJsonSummary:
    def test_writes_camel_case_json(self):
        result = build_analysis_result(build_tree(small_session_records()))
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "out" / "summary.json"
            write_json_summary(result, output)
            data = json.loads(output.read_text())
            assert data["sessionId"] == "test-session"
            assert data["toolStats"][0]["avgDurationMs"] == 1000
