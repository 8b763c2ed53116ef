"""Shared helpers for analyzers."""

import json
import math
from datetime import datetime
from typing import Any, Optional


def to_display_text(value: Any) -> str:
    """Recursively coerce mixed tool-result content into a display string.

    Order of precedence: strings pass through, None becomes empty, lists
    are joined with spaces, dicts with a string ``text`` use it, anything
    else is JSON-encoded (``str()`` if that fails).
    """
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(to_display_text(item) for item in value)
    if isinstance(value, dict):
        text = value.get("text")
        if isinstance(text, str):
            return text
        try:
            return json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError):
            return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return str(value)


def truncate(text: str, max_length: int) -> str:
    """Truncate to ``max_length`` characters, appending "..." if trimmed."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def first_line(text: str, max_length: int = 80) -> str:
    lines = text.split("\n")
    return lines[0][:max_length] if lines else ""


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (1.5 -> 2, 0.25 -> 0.3)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def parse_timestamp_ms(timestamp: Optional[str]) -> Optional[float]:
    """Milliseconds since the epoch for an ISO-8601 string, None if invalid."""
    if not timestamp or not isinstance(timestamp, str):
        return None
    try:
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt.timestamp() * 1000


def elapsed_ms(start: Optional[str], end: Optional[str]) -> Optional[int]:
    """Milliseconds from ``start`` to ``end``.

    None when either side is missing or unparseable, or when the result
    would be negative (clock skew, out-of-order records).
    """
    start_ms = parse_timestamp_ms(start)
    end_ms = parse_timestamp_ms(end)
    if start_ms is None or end_ms is None:
        return None
    delta = int(round(end_ms - start_ms))
    return delta if delta >= 0 else None
