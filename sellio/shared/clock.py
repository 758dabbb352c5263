"""Time helpers.

Slots are stored as local (creator) calendar date + wall time. Timestamps in
the database are naive UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..config import CREATOR_TZ


def now_local() -> datetime:
    """Current aware time in the creator's timezone"""
    return datetime.now(CREATOR_TZ)


def utcnow() -> datetime:
    """Naive UTC timestamp for database columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime) -> datetime:
    """Interpret naive values as UTC and convert to creator time"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(CREATOR_TZ)


def slot_start_at(slot_date: date, start_time: time) -> datetime:
    return datetime.combine(slot_date, start_time, tzinfo=CREATOR_TZ)


def today_local(now: Optional[datetime] = None) -> date:
    return to_local(now).date() if now else now_local().date()


def minutes_of(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError("Time must fall within a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def hours_until(start: datetime, now: datetime) -> float:
    return (start - now) / timedelta(hours=1)
