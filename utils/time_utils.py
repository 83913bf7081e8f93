"""
utils/time_utils.py

Purpose: Time and date helpers

- Unix timestamp conversion for Stripe payloads
- Lenient parsing of legacy transaction dates
- Billing period arithmetic
- Human-readable durations and "time ago" labels
"""

import calendar
import math
from datetime import datetime, date, timezone
from typing import Any, Optional


def from_unix_timestamp(value: Any) -> Optional[datetime]:
    """
    Converts a Stripe unix timestamp (seconds) to a naive UTC datetime.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parses a legacy date value, returning None when it cannot be read.

    Accepts datetimes, dates, unix seconds or milliseconds, ISO strings
    and Mongo extended JSON ({"$date": ...}).
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, dict) and "$date" in value:
        return parse_date(value["$date"])
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Milliseconds from dashboard clients, seconds from Stripe
        seconds = value / 1000 if value > 10 ** 11 else value
        return from_unix_timestamp(seconds)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def parse_date_or_now(value: Any) -> datetime:
    """Like parse_date, substituting the current time for unreadable values."""
    return parse_date(value) or datetime.utcnow()


def add_one_month(dt: datetime) -> datetime:
    """Next billing date: same day next month, clamped to month end."""
    year = dt.year + (1 if dt.month == 12 else 0)
    month = 1 if dt.month == 12 else dt.month + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def start_of_day(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def format_duration(seconds: Optional[float]) -> str:
    """
    Formats a duration in seconds as m:ss.
    """
    if not seconds:
        return "0:00"
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def time_ago(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Returns a short relative label like "5 minutes ago".
    """
    if not when:
        return "Never"
    now = now or datetime.utcnow()
    diff_minutes = int((now - when).total_seconds() // 60)

    if diff_minutes < 1:
        return "Just now"
    if diff_minutes < 60:
        return f"{diff_minutes} minutes ago"

    diff_hours = diff_minutes // 60
    if diff_hours < 24:
        return f"{diff_hours} hours ago"

    return f"{diff_hours // 24} days ago"


def billable_minutes(total_seconds: float, call_count: int) -> int:
    """
    Billable minutes: total duration rounded up, at least one per call.
    """
    return max(math.ceil((total_seconds or 0) / 60), call_count)
