"""Time utilities for consistent timestamp handling."""

from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_midnight(day: date) -> datetime:
    """Return 00:00 UTC of *day* as an aware datetime."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
