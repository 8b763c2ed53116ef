"""Analyzers that derive views from a SessionTree."""

from .context_tracker import (
    COMPACTION_MODES,
    ContextTrackerResult,
    analyze_context,
)
from .network_tab import (
    NetworkFilters,
    NetworkTabResult,
    RequestFilter,
    analyze_network_tab,
    network_filters,
)
from .reasoning_chain import analyze_reasoning_chain
from .skill_detector import SkillDetectorResult, analyze_skills
from .tool_dashboard import ToolDashboardResult, analyze_tool_dashboard
from .utils import to_display_text

__all__ = [
    # Context tracking
    "COMPACTION_MODES",
    "ContextTrackerResult",
    "analyze_context",
    # Network inspector
    "NetworkFilters",
    "NetworkTabResult",
    "RequestFilter",
    "analyze_network_tab",
    "network_filters",
    # Timeline, tools, skills
    "analyze_reasoning_chain",
    "SkillDetectorResult",
    "analyze_skills",
    "ToolDashboardResult",
    "analyze_tool_dashboard",
    "to_display_text",
]
