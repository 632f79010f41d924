# gemini_calendar/timefmt.py
"""
RFC3339 helpers.

RFC3339 is the exchange format for every date-time that crosses the tool
boundary: the clock tool emits it, the register tool accepts it, and the
Calendar API speaks it.
"""

from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Current instant as a timezone-aware UTC datetime, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_rfc3339(dt_str: str) -> datetime:
    """
    Parse an RFC3339 datetime string into a timezone-aware datetime.

    Notes:
    - Google often returns a trailing 'Z' (UTC); fromisoformat wants '+00:00'.
    - A string without an explicit offset is rejected. Naive datetimes would
      silently pick up the local timezone somewhere downstream.
    """
    if not isinstance(dt_str, str):
        raise ValueError(f"expected an RFC3339 string, got {type(dt_str).__name__}")

    s = dt_str.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValueError(f"RFC3339 datetime needs an explicit timezone offset: {dt_str!r}")
    return dt


def to_rfc3339(dt: datetime) -> str:
    """
    Format an aware datetime as RFC3339 at seconds precision (e.g. 2025-12-29T09:00:00+00:00).
    """
    if dt.tzinfo is None:
        raise ValueError("to_rfc3339 needs a timezone-aware datetime")
    return dt.isoformat(timespec="seconds")
