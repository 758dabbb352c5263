"""Slot generation - pure functions that turn a creator's schedule into slot rows.

Nothing here touches the database; the slot service persists the result
through the idempotent bulk insert.
"""

from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Optional

from ...config import MAX_RECURRING_WEEKS
from ...shared.clock import minutes_of, time_from_minutes

# Weekday numbering used by the dashboard: 0 = Sunday ... 6 = Saturday
SUNDAY = 0
SATURDAY = 6


class SlotGenerationError(ValueError):
    """Invalid generation input; the message is shown to the creator as-is"""


@dataclass(frozen=True)
class SlotSpec:
    slot_date: date
    start_time: time
    end_time: time

    def as_row(self, product_id: int, creator_id: int, max_bookings: int = 1) -> dict:
        return {
            "product_id": product_id,
            "creator_id": creator_id,
            "slot_date": self.slot_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "max_bookings": max_bookings,
            "current_bookings": 0,
            "is_available": True,
            "is_booked": False,
        }


def dashboard_weekday(value: date) -> int:
    """Python's Monday=0 weekday converted to Sunday=0 numbering"""
    return (value.weekday() + 1) % 7


def _check_duration(duration_minutes: int) -> None:
    if duration_minutes is None or duration_minutes <= 0:
        raise SlotGenerationError("Duration must be greater than 0 minutes")


def tile_window(start: time, end: time, duration_minutes: int) -> list[tuple[time, time]]:
    """Back-to-back intervals of ``duration_minutes`` inside [start, end).

    A final tile that would run past ``end`` is dropped.
    """
    _check_duration(duration_minutes)
    start_min = minutes_of(start)
    end_min = minutes_of(end)
    if end_min <= start_min:
        raise SlotGenerationError("End time must be after start time")

    tiles = []
    cursor = start_min
    while cursor + duration_minutes <= end_min:
        tiles.append((time_from_minutes(cursor), time_from_minutes(cursor + duration_minutes)))
        cursor += duration_minutes
    return tiles


def single_slot(
    slot_date: date,
    start: time,
    duration_minutes: int,
    end: Optional[time] = None,
) -> SlotSpec:
    """One slot; ``end`` overrides the duration when given"""
    if end is None:
        _check_duration(duration_minutes)
        end_min = minutes_of(start) + duration_minutes
        if end_min >= 24 * 60:
            raise SlotGenerationError("Slot must end on the same day it starts")
        end = time_from_minutes(end_min)
    if minutes_of(end) <= minutes_of(start):
        raise SlotGenerationError("End time must be after start time")
    return SlotSpec(slot_date=slot_date, start_time=start, end_time=end)


def build_batch(slot_date: date, start: time, end: time, duration_minutes: int) -> list[SlotSpec]:
    """Tile one day's window"""
    tiles = tile_window(start, end, duration_minutes)
    if not tiles:
        raise SlotGenerationError("Time window is shorter than one slot")
    return [SlotSpec(slot_date=slot_date, start_time=s, end_time=e) for s, e in tiles]


def recurring_dates(weekdays: list[int], weeks: int, today: date) -> list[date]:
    """Dates from tomorrow through ``today + weeks*7`` whose weekday is selected"""
    if not weekdays:
        raise SlotGenerationError("Select at least one day of the week")
    if any(day < SUNDAY or day > SATURDAY for day in weekdays):
        raise SlotGenerationError("Days of the week must be between 0 (Sunday) and 6 (Saturday)")
    if weeks is None or weeks < 1 or weeks > MAX_RECURRING_WEEKS:
        raise SlotGenerationError(f"Weeks must be between 1 and {MAX_RECURRING_WEEKS}")

    selected = set(weekdays)
    last_day = today + timedelta(days=weeks * 7)
    dates = []
    current = today + timedelta(days=1)
    while current <= last_day:
        if dashboard_weekday(current) in selected:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def build_recurring(
    weekdays: list[int],
    weeks: int,
    start: time,
    end: time,
    duration_minutes: int,
    today: date,
) -> list[SlotSpec]:
    """Every tile of the window on every selected weekday of the range"""
    dates = recurring_dates(weekdays, weeks, today)
    tiles = tile_window(start, end, duration_minutes)
    if not tiles:
        raise SlotGenerationError("Time window is shorter than one slot")
    return [SlotSpec(slot_date=d, start_time=s, end_time=e) for d in dates for s, e in tiles]
