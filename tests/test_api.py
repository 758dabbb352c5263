import io
from datetime import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from conftest import future_date, make_coupon, make_order, make_product, make_slot
from sellio import config
from sellio.auth import get_current_creator
from sellio.database import get_db
from sellio.domain.fulfillments.repository import FulfillmentRepository
from sellio.domain.slots.repository import SlotRepository
from sellio.domain.slots.router import get_slot_service
from sellio.domain.slots.service import SlotService
from sellio.main import app
from sellio.services.slip_verification import get_slip_verifier
from sellio.services.storage_service import get_slip_storage

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture
def client(db, creator, storage, verifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_creator] = lambda: creator
    app.dependency_overrides[get_slip_storage] = lambda: storage
    app.dependency_overrides[get_slip_verifier] = lambda: verifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def png_upload():
    return {"file": ("slip.png", io.BytesIO(b"\x89PNG slip"), "image/png")}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_store_lists_open_slots(client, db, booking_product):
    day = future_date()
    make_slot(db, booking_product, slot_date=day, start=time(9, 0))
    make_slot(db, booking_product, slot_date=day, start=time(11, 0), current_bookings=1)

    response = client.get(f"/store/products/{booking_product.id}/slots")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["dates"][day.isoformat()][0]["startTime"] == "09:00"
    assert body["dates"][day.isoformat()][0]["remaining"] == 1


def test_checkout_then_slip_upload(client, db, booking_product, storage, sent_emails):
    slot = make_slot(db, booking_product)

    created = client.post(
        "/orders",
        json={
            "productId": booking_product.id,
            "slotId": slot.id,
            "buyerName": "Somchai",
            "buyerEmail": "Somchai@Example.com",
        },
    )
    assert created.status_code == 200
    order = created.json()
    assert order["status"] == "pending_payment"
    assert order["bookingTime"] == "09:00"
    assert any(e["type"] == "new_order" for e in sent_emails)

    uploaded = client.post(f"/orders/{order['id']}/slip", files=png_upload())
    assert uploaded.status_code == 200
    assert uploaded.json()["status"] == "pending_confirmation"
    assert storage.uploads[0]["order_id"] == order["id"]


def test_checkout_on_full_slot_is_409(client, db, booking_product):
    slot = make_slot(db, booking_product, current_bookings=1)

    response = client.post(
        "/orders",
        json={"productId": booking_product.id, "slotId": slot.id, "buyerName": "A", "buyerEmail": "a@example.com"},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "capacity_exceeded"


def test_checkout_validation_error_is_422(client, booking_product):
    response = client.post("/orders", json={"productId": booking_product.id, "buyerName": "A"})
    assert response.status_code == 422


def test_slip_must_be_an_image(client, db, booking_product):
    order = make_order(db, booking_product)
    response = client.post(
        f"/orders/{order.id}/slip",
        files={"file": ("slip.txt", io.BytesIO(b"hello"), "text/plain")},
    )
    assert response.status_code == 400


def test_creator_confirms_and_rejects(client, db, creator, sent_emails):
    product = make_product(db, creator, product_type="digital")
    to_confirm = make_order(db, product, status="pending_confirmation")
    to_reject = make_order(db, product, status="pending_confirmation", buyer_email="other@example.com")

    confirmed = client.post(f"/dashboard/orders/{to_confirm.id}/confirm", headers=AUTH)
    rejected = client.post(
        f"/dashboard/orders/{to_reject.id}/reject", json={"reason": "Amount does not match"}, headers=AUTH
    )

    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert rejected.json()["status"] == "cancelled"
    assert rejected.json()["payment"]["status"] == "failed"
    types = {e["type"] for e in sent_emails}
    assert {"payment_confirmed", "payment_rejected"} <= types


def test_order_stats(client, db, creator):
    product = make_product(db, creator, product_type="digital", price=300)
    make_order(db, product, status="confirmed")
    make_order(db, product)

    stats = client.get("/dashboard/orders/stats", headers=AUTH).json()

    assert stats["total"] == 2
    assert stats["confirmed"] == 1
    assert stats["pendingPayment"] == 1
    assert stats["revenue"] == 300


def test_buyer_cancel_and_reschedule(client, db, booking_product):
    slot_a = make_slot(db, booking_product, start=time(9, 0))
    slot_b = make_slot(db, booking_product, start=time(13, 0))
    order = make_order(db, booking_product, slot=slot_a, status="confirmed")

    available = client.get(f"/bookings/{order.id}/available-slots").json()
    assert available["total"] == 1

    moved = client.post(f"/bookings/{order.id}/reschedule", json={"slotId": slot_b.id})
    assert moved.status_code == 200
    assert moved.json()["rescheduleCount"] == 1

    again = client.post(f"/bookings/{order.id}/reschedule", json={"slotId": slot_a.id})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "reschedule_limit"

    cancelled = client.post(f"/bookings/{order.id}/cancel", json={"reason": "Sick"})
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/bookings/{order.id}/cancel", json={}).status_code == 200


def test_batch_generation(client, booking_product):
    response = client.post(
        "/slots/batch",
        headers=AUTH,
        json={
            "productId": booking_product.id,
            "slotDate": future_date().isoformat(),
            "startTime": "09:00",
            "endTime": "12:00",
        },
    )
    assert response.status_code == 200
    assert response.json()["created"] == 3


def test_partial_generation_is_207(client, db, booking_product, monkeypatch):
    original = SlotRepository._insert_statement
    calls = {"count": 0}

    def failing_after_first(session, chunk):
        calls["count"] += 1
        if calls["count"] > 1:
            raise SQLAlchemyError("statement too large")
        return original(session, chunk)

    monkeypatch.setattr(SlotRepository, "_insert_statement", staticmethod(failing_after_first))
    app.dependency_overrides[get_slot_service] = lambda: SlotService(db, chunk_size=2)

    response = client.post(
        "/slots/batch",
        headers=AUTH,
        json={
            "productId": booking_product.id,
            "slotDate": future_date().isoformat(),
            "startTime": "09:00",
            "endTime": "14:00",
        },
    )

    assert response.status_code == 207
    body = response.json()
    assert body["created"] == 2
    assert body["completed"] is False


def test_coupon_validation(client, db, creator, booking_product):
    make_coupon(db, creator, discount_type="fixed", discount_value=100)

    response = client.post(
        "/coupons/validate",
        json={"code": "save10", "productId": booking_product.id, "buyerEmail": "buyer@example.com"},
    )

    assert response.status_code == 200
    assert response.json()["finalAmount"] == 400


def test_download_access_link(client, db, creator):
    product = make_product(db, creator, product_type="digital")
    order = make_order(db, product, status="confirmed")
    fulfillment = FulfillmentRepository.add_fulfillment(
        db,
        order.id,
        "download",
        {"delivery_type": "file", "file_url": "https://files.test/a.pdf", "file_name": "a.pdf"},
        max_downloads=1,
    )
    db.commit()

    first = client.get(f"/fulfillments/access/{fulfillment.access_token}")
    second = client.get(f"/fulfillments/access/{fulfillment.access_token}")

    assert first.json()["url"] == "https://files.test/a.pdf"
    assert second.status_code == 403
    assert client.get("/fulfillments/access/unknown").status_code == 404


def test_calendar_file_for_confirmed_booking(client, db, booking_product):
    confirmed = make_order(db, booking_product, slot=make_slot(db, booking_product), status="confirmed")
    pending = make_order(db, booking_product, slot=make_slot(db, booking_product, start=time(14, 0)))

    response = client.get(f"/orders/{confirmed.id}/calendar.ics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert "BEGIN:VEVENT" in response.text
    assert client.get(f"/orders/{pending.id}/calendar.ics").status_code == 404


def test_cron_requires_secret(client, monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")

    assert client.post("/cron/expire-orders").status_code == 401
    response = client.post("/cron/expire-orders", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert response.json() == {"expired": 0}

    reminders = client.post("/cron/booking-reminders", headers={"X-Cron-Secret": "s3cret"})
    assert reminders.json() == {"due": 0, "sent": 0, "failed": 0}


def test_creator_calendar_includes_session_details(client, db, booking_product):
    day = future_date()
    order = make_order(db, booking_product, slot=make_slot(db, booking_product, slot_date=day), status="confirmed")
    FulfillmentRepository.add_fulfillment(
        db,
        order.id,
        "booking_details",
        {"meeting_type": "online", "meeting_url": "https://zoom.us/j/1", "meeting_platform": "Zoom"},
    )
    db.commit()

    ranged = client.get(
        "/dashboard/orders/calendar",
        params={"startDate": day.isoformat(), "endDate": day.isoformat()},
        headers=AUTH,
    )
    by_date = client.get(f"/dashboard/orders/calendar/{day.isoformat()}", headers=AUTH)

    assert ranged.status_code == 200
    booking = ranged.json()[0]
    assert booking["id"] == order.id
    assert booking["bookingTime"] == "09:00"
    assert booking["details"]["meeting_url"] == "https://zoom.us/j/1"
    assert by_date.json() == ranged.json()
    assert client.get(f"/dashboard/orders/calendar/{future_date(9).isoformat()}", headers=AUTH).json() == []
