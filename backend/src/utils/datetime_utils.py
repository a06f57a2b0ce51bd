"""
Datetime utilities for consistent timezone handling across the application.

All timestamps are stored and compared as timezone-aware UTC datetimes.
Some database backends (SQLite) drop the tzinfo on read, so values loaded
from the database go through ``ensure_utc`` before any arithmetic.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive values come back from the database and are already UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def elapsed_ms(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Milliseconds between two datetimes, or None if either is missing."""
    start_utc = ensure_utc(start)
    end_utc = ensure_utc(end)
    if start_utc is None or end_utc is None:
        return None
    return int((end_utc - start_utc).total_seconds() * 1000)
