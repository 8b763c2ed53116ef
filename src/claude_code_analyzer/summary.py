"""Assemble every analyzer's output into one serializable result."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .analyzer.context_tracker import ContextTrackerResult, analyze_context
from .analyzer.network_tab import NetworkTabResult, analyze_network_tab
from .analyzer.reasoning_chain import analyze_reasoning_chain
from .analyzer.skill_detector import analyze_skills
from .analyzer.tool_dashboard import analyze_tool_dashboard
from .config import Config
from .models import AnalysisResult, to_json_dict
from .parser import read_jsonl, read_session_bundle
from .tree import SessionTree

logger = logging.getLogger(__name__)


@dataclass
class SessionAnalysis:
    """A loaded session with both of its derived views."""

    path: Path
    tree: SessionTree
    result: AnalysisResult
    context: ContextTrackerResult
    network: NetworkTabResult


def build_analysis_result(tree: SessionTree, config: Optional[Config] = None) -> AnalysisResult:
    return _analyze(tree, config)[0]


def _analyze(
    tree: SessionTree, config: Optional[Config]
) -> tuple[AnalysisResult, ContextTrackerResult]:
    cfg = config or Config()

    dashboard = analyze_tool_dashboard(
        tree, window_size=cfg.pattern_window, min_count=cfg.pattern_min_count
    )
    context = analyze_context(
        tree,
        context_limit=cfg.context_limit,
        drop_ratio=cfg.compaction_drop_ratio,
        compaction_mode=cfg.compaction_mode,
    )
    skills = analyze_skills(tree, window_ms=cfg.spike_window_ms)

    events = tree.get_chronological_events()
    result = AnalysisResult(
        session_id=tree.get_session_id() or "unknown",
        session_start=events[0].timestamp if events else "",
        session_end=events[-1].timestamp if events else "",
        total_events=len(events),
        timeline=analyze_reasoning_chain(tree),
        tool_stats=dashboard.tool_stats,
        file_access=dashboard.file_access,
        tool_patterns=dashboard.tool_patterns,
        token_turns=context.token_turns,
        compaction_events=context.compaction_events,
        skill_impacts=skills.skill_impacts,
    )
    return result, context


def analyze_session_path(
    path: Path, config: Optional[Config] = None, bundle: bool = True
) -> SessionAnalysis:
    """Read a transcript (with its subagents unless ``bundle`` is off) and analyze it.

    Raises:
        FileNotFoundError: If the transcript does not exist.
    """
    path = Path(path)
    events = read_session_bundle(path) if bundle else read_jsonl(path)
    logger.info("Analyzing %s (%d events)", path, len(events))

    tree = SessionTree(events)
    result, context = _analyze(tree, config)
    return SessionAnalysis(
        path=path,
        tree=tree,
        result=result,
        context=context,
        network=analyze_network_tab(tree),
    )


def write_json_summary(result: AnalysisResult, output_path: Path) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(result), f, indent=2)
