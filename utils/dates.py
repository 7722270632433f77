from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def ensure_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def day_start(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        value = ensure_naive_utc(value).date()
    return datetime.combine(value, time.min)


def day_end(value: datetime | date) -> datetime:
    return day_start(value) + timedelta(days=1) - timedelta(microseconds=1)


def day_bounds(value: datetime | date) -> Tuple[datetime, datetime]:
    start = day_start(value)
    return start, start + timedelta(days=1)


def same_day(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return False
    return day_start(a) == day_start(b)


def month_key(now: datetime) -> str:
    return f"{now.year}-{now.month:02d}"


def iso_week_key(value: datetime | date) -> str:
    year, week, _ = value.isocalendar()
    return f"{year}-W{week:02d}"


def days_left_in_iso_week(value: datetime | date) -> int:
    # today counts: Monday -> 7, Sunday -> 1
    return 8 - value.isoweekday()
