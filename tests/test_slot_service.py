from datetime import datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import future_date, make_creator, make_order, make_product, make_slot
from sellio.config import CREATOR_TZ
from sellio.database import Base, enable_sqlite_foreign_keys
from sellio.domain.bookings.service import BookingService
from sellio.domain.slots.schemas import BatchSlotCreate, RecurringSlotCreate, SlotCreate
from sellio.domain.slots.service import AvailabilityService, SlotService
from sellio.models import BookingSlot, Order
from sellio.shared import results

# A Sunday morning
NOW = datetime(2031, 3, 9, 8, 0, tzinfo=CREATOR_TZ)


def recurring_request(product, **overrides):
    data = {
        "productId": product.id,
        "daysOfWeek": [1, 3, 5],
        "startTime": time(9, 0),
        "endTime": time(12, 0),
        "weeks": 2,
        "durationMinutes": 60,
    }
    data.update(overrides)
    return RecurringSlotCreate(**data)


def test_recurring_generation_creates_eighteen_rows(db, creator, booking_product):
    result = SlotService(db).create_recurring(recurring_request(booking_product), creator, now=NOW)

    assert result.success
    assert result.data.inserted == 18
    rows = db.query(BookingSlot).all()
    assert len(rows) == 18
    assert all(r.max_bookings == 1 and r.current_bookings == 0 for r in rows)


def test_recurring_generation_is_idempotent(db, creator, booking_product):
    service = SlotService(db)
    service.create_recurring(recurring_request(booking_product), creator, now=NOW)
    again = service.create_recurring(recurring_request(booking_product), creator, now=NOW)

    assert again.success
    assert again.changed is False
    assert again.data.skipped == 18
    assert db.query(BookingSlot).count() == 18


def test_partial_failure_reports_progress(db, creator, booking_product, monkeypatch):
    from sellio.domain.slots.repository import SlotRepository
    from sqlalchemy.exc import SQLAlchemyError

    original = SlotRepository._insert_statement
    calls = {"count": 0}

    def failing_after_first(session, chunk):
        calls["count"] += 1
        if calls["count"] > 1:
            raise SQLAlchemyError("payload too large")
        return original(session, chunk)

    monkeypatch.setattr(SlotRepository, "_insert_statement", staticmethod(failing_after_first))

    result = SlotService(db, chunk_size=5).create_recurring(recurring_request(booking_product), creator, now=NOW)

    assert not result.success
    assert result.code == results.PARTIAL_FAILURE
    assert result.data.inserted == 5
    assert db.query(BookingSlot).count() == 5


def test_generation_rejects_foreign_product(db, booking_product):
    stranger = make_creator(db)
    result = SlotService(db).create_recurring(recurring_request(booking_product), stranger, now=NOW)
    assert result.code == results.NOT_FOUND


def test_generation_rejects_non_bookable_product(db, creator):
    digital = make_product(db, creator, product_type="digital")
    result = SlotService(db).create_recurring(recurring_request(digital), creator, now=NOW)
    assert not result.success
    assert result.code == results.VALIDATION_ERROR


def test_generation_rejects_bad_weeks(db, creator, booking_product):
    result = SlotService(db).create_recurring(recurring_request(booking_product, weeks=13), creator, now=NOW)
    assert result.code == results.VALIDATION_ERROR


def test_single_slot_uses_product_duration(db, creator):
    product = make_product(
        db,
        creator,
        type_config={"duration_minutes": 90, "location": {"meeting_type": "online"}},
    )
    data = SlotCreate(productId=product.id, slotDate=future_date(), startTime=time(16, 0))
    result = SlotService(db).create_slot(data, creator)

    assert result.success
    slot = db.query(BookingSlot).one()
    assert slot.end_time == time(17, 30)


def test_batch_uses_requested_duration(db, creator, booking_product):
    data = BatchSlotCreate(
        productId=booking_product.id,
        slotDate=future_date(),
        startTime=time(13, 0),
        endTime=time(15, 0),
        durationMinutes=30,
        maxBookings=4,
    )
    result = SlotService(db).create_batch(data, creator)

    assert result.data.inserted == 4
    assert {s.max_bookings for s in db.query(BookingSlot)} == {4}


def test_cannot_delete_booked_slot(db, creator, booking_product):
    slot = make_slot(db, booking_product, current_bookings=1)
    result = SlotService(db).delete_slot(slot.id, creator)
    assert result.code == results.CONFLICT


def test_capacity_update_respects_existing_bookings(db, creator, booking_product):
    slot = make_slot(db, booking_product, max_bookings=3, current_bookings=2)
    service = SlotService(db)

    assert service.update_capacity(slot.id, 1, creator).code == results.CONFLICT
    updated = service.update_capacity(slot.id, 5, creator)
    assert updated.success
    assert updated.data.max_bookings == 5


def test_availability_toggle_is_reported_when_unchanged(db, creator, booking_product):
    slot = make_slot(db, booking_product)
    service = SlotService(db)

    assert service.set_availability(slot.id, True, creator).changed is False
    hidden = service.set_availability(slot.id, False, creator)
    assert hidden.changed is True
    assert hidden.data.is_available is False


def test_buyer_listing_matches_capacity_rules(db, creator):
    product = make_product(
        db,
        creator,
        type_config={
            "duration_minutes": 60,
            "buffer_minutes": 15,
            "location": {"meeting_type": "online", "meeting_url": "https://meet.example.com/a"},
        },
    )
    day = future_date()
    booked = make_slot(db, product, slot_date=day, start=time(9, 0), end=time(10, 0))
    make_order(db, product, slot=booked)
    blocked = make_slot(db, product, slot_date=day, start=time(10, 10), end=time(11, 10))
    free = make_slot(db, product, slot_date=day, start=time(10, 20), end=time(11, 20))
    hidden = make_slot(db, product, slot_date=day, start=time(14, 0), is_available=False)

    offered = AvailabilityService(db).list_available(product.id).data
    ids = [s.id for s in offered]

    assert free.id in ids
    assert booked.id not in ids
    assert blocked.id not in ids
    assert hidden.id not in ids


def test_buyer_listing_hides_unpublished_products(db, creator):
    product = make_product(db, creator, is_published=False)
    assert AvailabilityService(db).list_available(product.id).code == results.NOT_FOUND


def test_slot_management_is_scoped_to_owner(db, booking_product):
    stranger = make_creator(db)
    service = SlotService(db)

    assert service.list_slots(booking_product.id, stranger).code == results.NOT_FOUND
    data = SlotCreate(productId=booking_product.id, slotDate=future_date(), startTime=time(9, 0))
    assert service.create_slot(data, stranger).code == results.NOT_FOUND
    assert db.query(BookingSlot).count() == 0


def test_digital_products_have_no_slots(db, creator):
    digital = make_product(db, creator, product_type="digital")
    service = SlotService(db)

    assert service.list_slots(digital.id, creator).code == results.VALIDATION_ERROR
    data = BatchSlotCreate(
        productId=digital.id, slotDate=future_date(), startTime=time(9, 0), endTime=time(11, 0)
    )
    assert service.create_batch(data, creator).code == results.VALIDATION_ERROR


@pytest.fixture
def fk_db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def test_deleting_emptied_slot_keeps_order_snapshot(fk_db):
    creator = make_creator(fk_db)
    product = make_product(fk_db, creator)
    slot = make_slot(fk_db, product, start=time(15, 0))
    order = make_order(fk_db, product, slot=slot, status="confirmed")
    assert BookingService(fk_db).cancel_order(order.id, "Creator unavailable", creator=creator).success

    result = SlotService(fk_db).delete_slot(slot.id, creator)

    assert result.success
    fk_db.expire_all()
    kept = fk_db.get(Order, order.id)
    assert kept.slot_id is None
    assert kept.booking_time == time(15, 0)
    assert fk_db.get(BookingSlot, slot.id) is None
