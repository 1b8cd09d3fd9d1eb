"""Date-window helpers for statistics and reports.

Two definitions of "month" coexist: practice statistics use the calendar
month, reports and analytics use a rolling 30 days.
"""

from datetime import datetime, timedelta, timezone
from typing import NamedTuple


class DateRange(NamedTuple):
    start: datetime
    end: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO timestamp stored inside a JSON column."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def start_of_year(now: datetime) -> datetime:
    return start_of_day(now).replace(month=1, day=1)


def rolling(now: datetime, days: int) -> datetime:
    return now - timedelta(days=days)


def practice_stats_window(period: str | None, now: datetime | None = None) -> DateRange:
    """Window for a student's own practice statistics (default: week)."""
    now = now or utcnow()
    if period == "day":
        start = start_of_day(now)
    elif period == "month":
        start = start_of_month(now)
    elif period == "year":
        start = start_of_year(now)
    else:
        start = rolling(now, 7)
    return DateRange(start, now)


def report_window(period: str | None, now: datetime | None = None) -> DateRange:
    """Window for progress reports (default: rolling 30 days)."""
    now = now or utcnow()
    if period == "week":
        start = rolling(now, 7)
    elif period == "quarter":
        start = rolling(now, 90)
    elif period == "year":
        start = start_of_year(now)
    else:
        start = rolling(now, 30)
    return DateRange(start, now)


def analytics_window(period: str | None, now: datetime | None = None) -> DateRange:
    """Window for teacher analytics; no calendar-year option (default: 30 days)."""
    now = now or utcnow()
    if period == "week":
        start = rolling(now, 7)
    elif period == "quarter":
        start = rolling(now, 90)
    else:
        start = rolling(now, 30)
    return DateRange(start, now)
