"""Booking rules for a slot: capacity, advance notice and buffer.

These are predicates over already-loaded rows. The only authoritative
guard against overbooking is the conditional increment in
``SlotRepository.reserve``; a slot that passes here can still lose the race.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ...shared import results
from ...shared.clock import hours_until, minutes_of, slot_start_at


@dataclass(frozen=True)
class SlotVerdict:
    allowed: bool
    code: Optional[str] = None
    reason: Optional[str] = None


ALLOWED = SlotVerdict(allowed=True)


def has_capacity(slot) -> bool:
    return (slot.current_bookings or 0) < (slot.max_bookings or 1)


def meets_advance_notice(slot, minimum_advance_hours: int, now: datetime) -> bool:
    """Slot start must be at least ``minimum_advance_hours`` away (and never in the past)"""
    start = slot_start_at(slot.slot_date, slot.start_time)
    return hours_until(start, now) >= max(0, minimum_advance_hours or 0)


def _effective_bookings(slot, released_slot_id: Optional[int]) -> int:
    booked = slot.current_bookings or 0
    if released_slot_id is not None and slot.id == released_slot_id:
        booked -= 1
    return booked


def buffer_blocker(
    slot,
    same_day_slots: Iterable,
    buffer_minutes: int,
    released_slot_id: Optional[int] = None,
):
    """Booked same-day slot whose [start, end + buffer) contains this slot's start.

    ``released_slot_id`` is counted with one booking less, so a buyer moving
    away from a slot is not blocked by their own booking.
    """
    if not buffer_minutes or buffer_minutes <= 0:
        return None

    start = minutes_of(slot.start_time)
    for other in same_day_slots:
        if other.id == slot.id or other.slot_date != slot.slot_date:
            continue
        if _effective_bookings(other, released_slot_id) <= 0:
            continue
        blocked_from = minutes_of(other.start_time)
        blocked_until = minutes_of(other.end_time) + buffer_minutes
        if blocked_from <= start < blocked_until:
            return other
    return None


def evaluate_slot(
    slot,
    rules,
    same_day_slots: Iterable,
    now: datetime,
    released_slot_id: Optional[int] = None,
) -> SlotVerdict:
    """Check a slot against the product's scheduling rules.

    ``rules`` is a BookingConfig/LiveConfig (anything with
    ``minimum_advance_hours`` and ``buffer_minutes``).
    """
    if not slot.is_available:
        return SlotVerdict(False, results.SLOT_UNAVAILABLE, "This time slot is not available")

    if not has_capacity(slot):
        return SlotVerdict(False, results.CAPACITY_EXCEEDED, "This time slot is fully booked")

    if not meets_advance_notice(slot, rules.minimum_advance_hours, now):
        if (rules.minimum_advance_hours or 0) > 0:
            reason = f"Bookings must be made at least {rules.minimum_advance_hours} hours in advance"
        else:
            reason = "This time slot has already started"
        return SlotVerdict(False, results.ADVANCE_NOTICE, reason)

    blocker = buffer_blocker(slot, same_day_slots, rules.buffer_minutes, released_slot_id)
    if blocker is not None:
        return SlotVerdict(
            False,
            results.BUFFER_CONFLICT,
            f"This time is too close to another booking (needs {rules.buffer_minutes} minutes between sessions)",
        )

    return ALLOWED


def offerable_slots(
    slots: list,
    rules,
    now: datetime,
    exclude_slot_id: Optional[int] = None,
    released_slot_id: Optional[int] = None,
) -> list:
    """Slots a buyer may pick right now, in input order"""
    by_date = defaultdict(list)
    for slot in slots:
        by_date[slot.slot_date].append(slot)

    offered = []
    for slot in slots:
        if exclude_slot_id is not None and slot.id == exclude_slot_id:
            continue
        verdict = evaluate_slot(slot, rules, by_date[slot.slot_date], now, released_slot_id)
        if verdict.allowed:
            offered.append(slot)
    return offered


def group_by_date(slots: list) -> dict:
    """ISO date -> slots, keeping input order"""
    grouped: dict[str, list] = {}
    for slot in slots:
        grouped.setdefault(slot.slot_date.isoformat(), []).append(slot)
    return grouped
