from datetime import time

from conftest import make_creator, make_order, make_product, make_slot
from sellio.domain.bookings import service as booking_service_module
from sellio.domain.bookings.service import BookingService
from sellio.domain.slots.capacity import ALLOWED
from sellio.models import BookingSlot, Order
from sellio.shared import results


def seats(db, *slots):
    db.expire_all()
    return [db.get(BookingSlot, s.id).current_bookings for s in slots]


def test_reschedule_moves_the_seat_once(db, booking_product):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(10, 0))
    slot_c = make_slot(db, booking_product, start=time(14, 0))
    order = make_order(db, booking_product, slot=slot_a, status="confirmed")
    service = BookingService(db)

    moved = service.reschedule_order(order.id, slot_b.id)

    assert moved.success
    assert moved.data["order"].slot_id == slot_b.id
    assert moved.data["order"].booking_time == time(10, 0)
    assert moved.data["order"].reschedule_count == 1
    assert moved.data["previous"][1] == time(9, 0)
    assert seats(db, slot_a, slot_b) == [0, 1]

    again = service.reschedule_order(order.id, slot_c.id)
    assert again.code == results.RESCHEDULE_LIMIT
    assert seats(db, slot_b, slot_c) == [1, 0]


def test_reschedule_to_same_slot_is_rejected(db, booking_product):
    slot = make_slot(db, booking_product)
    order = make_order(db, booking_product, slot=slot)

    result = BookingService(db).reschedule_order(order.id, slot.id)

    assert result.code == results.VALIDATION_ERROR
    assert db.get(Order, order.id).reschedule_count == 0


def test_reschedule_to_full_slot_is_refused(db, booking_product):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(10, 0), current_bookings=1)
    order = make_order(db, booking_product, slot=slot_a)

    result = BookingService(db).reschedule_order(order.id, slot_b.id)

    assert result.code == results.CAPACITY_EXCEEDED
    assert seats(db, slot_a, slot_b) == [1, 1]


def test_lost_race_for_target_leaves_order_untouched(db, booking_product, monkeypatch):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(10, 0), current_bookings=1)
    order = make_order(db, booking_product, slot=slot_a, status="confirmed")
    monkeypatch.setattr(booking_service_module, "evaluate_slot", lambda *args, **kwargs: ALLOWED)

    result = BookingService(db).reschedule_order(order.id, slot_b.id)

    assert result.code == results.CAPACITY_EXCEEDED
    assert seats(db, slot_a, slot_b) == [1, 1]
    current = db.get(Order, order.id)
    assert current.slot_id == slot_a.id
    assert current.reschedule_count == 0
    assert current.booking_time == time(9, 0)


def test_reschedule_rejects_slot_of_other_product(db, creator, booking_product):
    other = make_product(db, creator)
    slot = make_slot(db, booking_product)
    foreign = make_slot(db, other, start=time(11, 0))
    order = make_order(db, booking_product, slot=slot)

    assert BookingService(db).reschedule_order(order.id, foreign.id).code == results.SLOT_UNAVAILABLE


def test_cancelled_booking_cannot_be_rescheduled(db, booking_product):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(10, 0))
    order = make_order(db, booking_product, slot=slot_a, status="cancelled")

    assert BookingService(db).reschedule_order(order.id, slot_b.id).code == results.INVALID_TRANSITION


def test_available_slots_exclude_current_slot(db, booking_product):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(10, 0))
    full = make_slot(db, booking_product, start=time(13, 0), current_bookings=1)
    order = make_order(db, booking_product, slot=slot_a)

    offered = BookingService(db).available_slots_for_reschedule(order.id).data
    ids = [s.id for s in offered]

    assert slot_b.id in ids
    assert slot_a.id not in ids
    assert full.id not in ids


def test_cancel_releases_seat_and_is_idempotent(db, booking_product):
    slot = make_slot(db, booking_product)
    order = make_order(db, booking_product, slot=slot, status="pending_confirmation")
    service = BookingService(db)

    first = service.cancel_order(order.id, reason="Schedule clash")
    assert first.success and first.changed
    assert first.data.status == "cancelled"
    assert first.data.cancel_reason == "Schedule clash"
    assert seats(db, slot) == [0]

    second = service.cancel_order(order.id)
    assert second.success
    assert second.changed is False
    assert seats(db, slot) == [0]


def test_unpaid_order_cannot_be_cancelled(db, booking_product):
    order = make_order(db, booking_product, slot=make_slot(db, booking_product))
    assert BookingService(db).cancel_order(order.id).code == results.INVALID_TRANSITION


def test_creator_cancel_is_scoped_to_their_orders(db, booking_product):
    order = make_order(db, booking_product, slot=make_slot(db, booking_product), status="confirmed")
    stranger = make_creator(db)

    assert BookingService(db).cancel_order(order.id, creator=stranger).code == results.NOT_FOUND
    owner = booking_product.creator
    assert BookingService(db).cancel_order(order.id, creator=owner).success


def test_buyer_cannot_cancel_digital_order(db, creator):
    digital = make_product(db, creator, product_type="digital")
    order = make_order(db, digital, status="confirmed")
    service = BookingService(db)

    assert service.cancel_order(order.id).code == results.VALIDATION_ERROR
    db.expire_all()
    assert db.get(Order, order.id).status == "confirmed"
    assert service.cancel_order(order.id, creator=creator).success


def test_reschedule_needs_a_booking(db, creator):
    order = make_order(db, make_product(db, creator, product_type="digital"), status="confirmed")
    assert BookingService(db).available_slots_for_reschedule(order.id).code == results.VALIDATION_ERROR
