"""
Date and time utilities for LedgerCore.

Provides timezone-aware datetime helpers and date manipulation functions.
All persisted timestamps are UTC.
"""
from datetime import datetime, timezone, date


def utcnow() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        datetime: Current datetime in UTC with tzinfo set to timezone.utc

    Example:
        >>> now = utcnow()
        >>> now.tzinfo
        datetime.timezone.utc

    Note:
        Always use this function instead of datetime.now() to ensure
        timezone-aware timestamps across the application.
    """
    return datetime.now(timezone.utc)


def today_date() -> date:
    """Current UTC calendar day."""
    return utcnow().date()


def ensure_utc(v: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC (SQLite drops tzinfo on read).
    """
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def day_stamp(v: date | datetime) -> str:
    """
    Compact day representation used in document numbers.

    Example:
        >>> day_stamp(date(2026, 10, 19))
        '20261019'
    """
    if isinstance(v, datetime):
        v = ensure_utc(v).date()
    return v.strftime("%Y%m%d")


def parse_ISO_date(v) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v)
        except ValueError as e:
            raise ValueError(f"Input must be an ISO date string (YYYY-MM-DD). Error: {e}")
    raise TypeError(f"Input must be a str, date or datetime, got {type(v)}")
