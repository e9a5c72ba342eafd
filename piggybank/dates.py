"""
Date Normalization and Calendar Helpers

Stored transactions carry their date in one of several shapes:
- an ISO-8601 string ("2024-03-05T10:15:00Z", "2024-03-05")
- an epoch pair {"seconds": ..., "nanoseconds": ...} written by the document store
- a native datetime/date (already parsed upstream)

DESIGN DECISION: All of these are resolved ONCE, at the model boundary,
into a naive datetime in local time. Anything that cannot be parsed becomes
None and is excluded from calculations. The savings engine never sees the
union type.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta


def _to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; leave naive ones alone."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _parse_iso_string(value: str) -> Optional[datetime]:
    """isoparse accepts any fractional-second precision and a Z suffix."""
    text = value.strip()
    if not text:
        return None
    try:
        return _to_local_naive(isoparse(text))
    except (ValueError, OverflowError):
        return None


def _parse_epoch_pair(value: dict) -> Optional[datetime]:
    seconds = value.get("seconds", value.get("_seconds"))
    nanoseconds = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
    if seconds is None or isinstance(seconds, bool):
        return None
    try:
        timestamp = float(seconds) + float(nanoseconds) / 1_000_000_000
        return datetime.fromtimestamp(timestamp)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_transaction_date(value: Any) -> Optional[datetime]:
    """
    Normalize any stored date representation to a naive local datetime.

    Returns None for missing or unparseable values (data-quality policy:
    such records are silently excluded, not rejected).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        return _parse_iso_string(value)
    if isinstance(value, dict):
        return _parse_epoch_pair(value)
    return None


def days_in_month(day: date) -> int:
    """Number of calendar days (28-31) in the month containing `day`."""
    return calendar.monthrange(day.year, day.month)[1]


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def months_between(later: datetime, earlier: datetime) -> int:
    """
    Whole calendar months between two datetimes, truncated toward zero.

    months_between(2024-03-14, 2024-01-15) == 1
    """
    delta = relativedelta(later, earlier)
    return delta.years * 12 + delta.months


def iter_days(start: date, end: date):
    """Yield every calendar day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
