"""Configuration management for Claude Code Analyzer."""

import json
from pathlib import Path
from typing import Optional

from .analyzer.context_tracker import COMPACTION_MODES, DEFAULT_DROP_RATIO
from .analyzer.skill_detector import DEFAULT_SPIKE_WINDOW_MS

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "claude-code-analyzer"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
DEFAULT_CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"
DEFAULT_CONTEXT_LIMIT = 200_000


class Config:
    """Configuration for Claude Code Analyzer."""

    def __init__(
        self,
        projects_dir: Optional[Path] = None,
        context_limit: Optional[int] = DEFAULT_CONTEXT_LIMIT,
        compaction_drop_ratio: float = DEFAULT_DROP_RATIO,
        compaction_mode: str = "auto",
        spike_window_ms: int = DEFAULT_SPIKE_WINDOW_MS,
        pattern_window: int = 3,
        pattern_min_count: int = 2,
    ):
        if compaction_mode not in COMPACTION_MODES:
            raise ValueError(f"Unknown compaction mode: {compaction_mode}")
        self.projects_dir = projects_dir or DEFAULT_CLAUDE_PROJECTS_DIR
        self.context_limit = context_limit
        self.compaction_drop_ratio = compaction_drop_ratio
        self.compaction_mode = compaction_mode
        self.spike_window_ms = spike_window_ms
        self.pattern_window = pattern_window
        self.pattern_min_count = pattern_min_count

    def to_dict(self) -> dict:
        return {
            "projects_dir": str(self.projects_dir),
            "context_limit": self.context_limit,
            "compaction_drop_ratio": self.compaction_drop_ratio,
            "compaction_mode": self.compaction_mode,
            "spike_window_ms": self.spike_window_ms,
            "pattern_window": self.pattern_window,
            "pattern_min_count": self.pattern_min_count,
        }

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from file, falling back to defaults."""
        path = config_path or DEFAULT_CONFIG_FILE

        if not path.exists():
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            defaults = cls()
            context_limit = data.get("context_limit", defaults.context_limit)
            return cls(
                projects_dir=Path(data["projects_dir"])
                if data.get("projects_dir")
                else None,
                context_limit=int(context_limit) if context_limit is not None else None,
                compaction_drop_ratio=float(
                    data.get("compaction_drop_ratio", defaults.compaction_drop_ratio)
                ),
                compaction_mode=data.get("compaction_mode", defaults.compaction_mode),
                spike_window_ms=int(data.get("spike_window_ms", defaults.spike_window_ms)),
                pattern_window=int(data.get("pattern_window", defaults.pattern_window)),
                pattern_min_count=int(
                    data.get("pattern_min_count", defaults.pattern_min_count)
                ),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError):
            return cls()

    def save(self, config_path: Optional[Path] = None):
        """Save configuration to file."""
        path = config_path or DEFAULT_CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
