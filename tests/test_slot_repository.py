from datetime import time, timedelta

from sqlalchemy.exc import SQLAlchemyError

from conftest import future_date, make_slot
from sellio.domain.slots.generator import build_batch
from sellio.domain.slots.repository import SlotRepository
from sellio.models import BookingSlot


def batch_rows(product, days=1, start=time(9, 0), end=time(12, 0)):
    rows = []
    for offset in range(days):
        specs = build_batch(future_date(3 + offset), start, end, 60)
        rows += [spec.as_row(product.id, product.creator_id) for spec in specs]
    return rows


def test_insert_skips_existing_rows(db, booking_product):
    rows = batch_rows(booking_product)

    first = SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=500)
    second = SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=500)

    assert (first.inserted, first.skipped, first.completed) == (3, 0, True)
    assert (second.inserted, second.skipped, second.completed) == (0, 3, True)
    assert db.query(BookingSlot).count() == 3


def test_rerun_does_not_touch_existing_counters(db, booking_product):
    rows = batch_rows(booking_product)
    SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=500)
    taken = db.query(BookingSlot).order_by(BookingSlot.start_time).first()
    SlotRepository.reserve(db, taken.id)
    db.commit()

    SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=500)

    db.refresh(taken)
    assert taken.current_bookings == 1
    assert taken.is_booked is True


def test_insert_in_small_chunks(db, booking_product):
    rows = batch_rows(booking_product, days=3)
    result = SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=2)
    assert result.inserted == 9
    assert result.processed == 9


def test_failed_chunk_keeps_earlier_chunks(db, booking_product, monkeypatch):
    rows = batch_rows(booking_product, days=2)
    original = SlotRepository._insert_statement
    calls = {"count": 0}

    def flaky_statement(session, chunk):
        calls["count"] += 1
        if calls["count"] == 2:
            raise SQLAlchemyError("connection dropped")
        return original(session, chunk)

    monkeypatch.setattr(SlotRepository, "_insert_statement", staticmethod(flaky_statement))

    result = SlotRepository.insert_ignore_duplicates(db, rows, chunk_size=3)

    assert result.completed is False
    assert result.inserted == 3
    assert result.error
    assert db.query(BookingSlot).count() == 3


def test_reserve_fills_the_last_seat_then_refuses(db, booking_product):
    slot = make_slot(db, booking_product, max_bookings=2, current_bookings=1)

    assert SlotRepository.reserve(db, slot.id) is True
    db.commit()
    assert SlotRepository.reserve(db, slot.id) is False
    db.commit()

    db.refresh(slot)
    assert slot.current_bookings == 2
    assert slot.is_booked is True


def test_release_never_goes_below_zero(db, booking_product):
    slot = make_slot(db, booking_product, max_bookings=2, current_bookings=1)

    assert SlotRepository.release(db, slot.id) is True
    assert SlotRepository.release(db, slot.id) is False
    db.commit()

    db.refresh(slot)
    assert slot.current_bookings == 0
    assert slot.is_booked is False


def test_release_keeps_booked_flag_while_seats_remain(db, booking_product):
    slot = make_slot(db, booking_product, max_bookings=3, current_bookings=2)
    SlotRepository.release(db, slot.id)
    db.commit()
    db.refresh(slot)
    assert slot.current_bookings == 1
    assert slot.is_booked is True


def test_capacity_cannot_drop_below_bookings(db, booking_product):
    slot = make_slot(db, booking_product, max_bookings=3, current_bookings=2)
    assert SlotRepository.update_max_bookings(db, slot.id, slot.creator_id, 1) == 0
    assert SlotRepository.update_max_bookings(db, slot.id, slot.creator_id, 2) == 1


def test_only_unbooked_slots_can_be_deleted(db, booking_product):
    booked = make_slot(db, booking_product, current_bookings=1)
    free = make_slot(db, booking_product, start=time(11, 0))

    assert SlotRepository.delete_if_unbooked(db, booked.id, booked.creator_id) == 0
    assert SlotRepository.delete_if_unbooked(db, free.id, free.creator_id) == 1


def test_list_product_slots_is_ordered(db, booking_product):
    later = make_slot(db, booking_product, slot_date=future_date(5), start=time(9, 0))
    early = make_slot(db, booking_product, slot_date=future_date(4), start=time(14, 0))
    earliest = make_slot(db, booking_product, slot_date=future_date(4), start=time(8, 0))

    slots = SlotRepository.list_product_slots(db, booking_product.id, from_date=future_date(4))
    assert [s.id for s in slots] == [earliest.id, early.id, later.id]
    assert SlotRepository.list_product_slots(db, booking_product.id, from_date=future_date(5) + timedelta(days=1)) == []
