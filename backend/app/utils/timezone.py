"""
Time helpers.

All timestamps are stored and compared in UTC. Services call `utc_now()`
rather than `datetime.now()` so a single clock is used for every deadline
check in a request.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current time in UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
