"""Per-file analysis cache keyed by modification time."""

import logging
from pathlib import Path
from typing import Callable, Optional

from .summary import SessionAnalysis, analyze_session_path

logger = logging.getLogger(__name__)


class AnalysisCache:
    """Reuse a session's analysis until its transcript changes on disk.

    Entries are recomputed wholesale when the file's mtime advances.
    Concurrent callers for the same stale entry may each recompute it.
    """

    def __init__(self, analyze: Callable[[Path], SessionAnalysis] = analyze_session_path):
        self._analyze = analyze
        self._entries: dict[Path, tuple[float, SessionAnalysis]] = {}

    def get(self, path: Path) -> SessionAnalysis:
        """Return the analysis for ``path``, recomputing it if stale.

        Raises:
            FileNotFoundError: If the transcript does not exist.
        """
        path = Path(path)
        mtime = path.stat().st_mtime

        cached = self._entries.get(path)
        if cached is not None and cached[0] >= mtime:
            return cached[1]

        logger.info("Recomputing analysis for %s", path)
        analysis = self._analyze(path)
        self._entries[path] = (mtime, analysis)
        return analysis

    def peek(self, path: Path) -> Optional[SessionAnalysis]:
        cached = self._entries.get(Path(path))
        return cached[1] if cached else None

    def invalidate(self, path: Path) -> None:
        self._entries.pop(Path(path), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path) -> bool:
        return Path(path) in self._entries
