"""
Day-index utilities matching the ledger's notion of "day".

The ledger stores its cursor (``nextUncheckedDay``) as whole days elapsed
since the Unix epoch in UTC. Everything in the scheduler that deals with
dates goes through these helpers so that local time never leaks in.
"""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

SECONDS_IN_DAY = 86400

EPOCH_DATE = date(1970, 1, 1)


def get_current_timestamp(now: Optional[datetime] = None) -> int:
    """
    Get the current UTC timestamp in whole seconds.

    Args:
        now: Optional aware datetime to use instead of the wall clock

    Returns:
        Unix timestamp in seconds
    """
    if now is None:
        now = datetime.now(timezone.utc)

    return int(now.timestamp())


def get_current_day(now: Optional[datetime] = None) -> int:
    """
    Get the current day index (days since the Unix epoch).

    Args:
        now: Optional aware datetime to use instead of the wall clock

    Returns:
        floor(unix_seconds / 86400)
    """
    return get_current_timestamp(now) // SECONDS_IN_DAY


def day_index_to_date(day_index: int) -> date:
    """
    Convert a day index to its UTC calendar date.

    Args:
        day_index: Whole days since 1970-01-01

    Returns:
        The calendar date of that day in UTC
    """
    return EPOCH_DATE + timedelta(days=day_index)


def date_to_day_index(day: date) -> int:
    """Convert a calendar date to its day index."""
    return (day - EPOCH_DATE).days


def format_day(day_index: int) -> str:
    """
    Format a day index for logs and notifications.

    Returns:
        ISO date string, e.g. "2024-01-30"
    """
    return day_index_to_date(day_index).isoformat()


def monotonic_ms() -> int:
    """Monotonic clock reading in milliseconds, for elapsed-time metrics."""
    return int(time.monotonic() * 1000)


def elapsed_ms(start_ms: int, end_ms: Optional[int] = None) -> int:
    """
    Calculate elapsed milliseconds since a ``monotonic_ms()`` reading.

    Args:
        start_ms: Start reading
        end_ms: End reading, defaults to now

    Returns:
        Elapsed time in milliseconds
    """
    if end_ms is None:
        end_ms = monotonic_ms()

    return end_ms - start_ms


def utc_now_iso() -> str:
    """Current wall-clock time as an ISO8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()
