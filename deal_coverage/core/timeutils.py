"""
Timestamp helpers shared by the models and the scoring services.

CRM records carry timestamps in several shapes (ISO-8601 strings with or
without a trailing "Z", epoch milliseconds as numbers or digit strings, and
naive datetimes). Everything is normalised to timezone-aware UTC so that
"days since" arithmetic never mixes naive and aware values.

Usage:
    from deal_coverage.core.timeutils import parse_datetime, days_between, utc_now

    entered = parse_datetime("2026-01-28T10:00:00Z")
    days_in_stage = days_between(entered, utc_now())
"""

from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Make a datetime timezone-aware.

    Naive datetimes are assumed to already be in UTC; aware datetimes are
    converted to UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Leniently coerce a CRM timestamp into an aware UTC datetime.

    Args:
        value: datetime, date, ISO-8601 string, or epoch milliseconds
            (int, float or digit string)

    Returns:
        Aware UTC datetime, or None when the value is empty or unparseable
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_datetime(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def days_between(earlier: datetime, later: datetime) -> int:
    """
    Whole days elapsed from `earlier` to `later`, floored.

    Args:
        earlier: Start timestamp
        later: End timestamp

    Returns:
        Number of complete days (negative if `earlier` is in the future)
    """
    return (ensure_utc(later) - ensure_utc(earlier)).days
