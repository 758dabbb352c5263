from datetime import timedelta

from conftest import make_creator, make_order, make_product, make_slot
from sellio.domain.fulfillments.repository import FulfillmentRepository
from sellio.domain.fulfillments.schemas import PROTECTED_URL_MARKER, FulfillmentUpdate
from sellio.domain.fulfillments.service import FulfillmentService, buyer_view
from sellio.shared import results
from sellio.shared.clock import utcnow

FILE_CONTENT = {
    "delivery_type": "file",
    "file_url": "https://files.test/ebook.pdf",
    "file_name": "ebook.pdf",
}


def download_order(db, creator, status="confirmed", content=None, max_downloads=2, access_until=None):
    product = make_product(db, creator, product_type="digital")
    order = make_order(db, product, status=status)
    fulfillment = FulfillmentRepository.add_fulfillment(
        db,
        order.id,
        "download",
        dict(content or FILE_CONTENT),
        max_downloads=max_downloads,
        access_until=access_until or utcnow() + timedelta(days=30),
    )
    db.commit()
    db.refresh(fulfillment)
    return order, fulfillment


def booking_order(db, product, status="pending_confirmation"):
    order = make_order(db, product, slot=make_slot(db, product), status=status)
    FulfillmentRepository.add_fulfillment(
        db,
        order.id,
        "booking_details",
        {"meeting_type": "online", "meeting_url": "", "meeting_platform": "Zoom", "notes": ""},
    )
    db.commit()
    return order


def test_download_limit_is_enforced(db, creator):
    _, fulfillment = download_order(db, creator, max_downloads=2)
    service = FulfillmentService(db)

    first = service.access(fulfillment.access_token)
    second = service.access(fulfillment.access_token)
    third = service.access(fulfillment.access_token)

    assert first.data == {
        "url": "https://files.test/ebook.pdf",
        "name": "ebook.pdf",
        "download_count": 1,
        "max_downloads": 2,
    }
    assert second.data["download_count"] == 2
    assert third.code == results.DOWNLOAD_LIMIT


def test_unknown_token_is_not_found(db):
    assert FulfillmentService(db).access("no-such-token").code == results.NOT_FOUND


def test_unconfirmed_order_cannot_download(db, creator):
    _, fulfillment = download_order(db, creator, status="pending_confirmation")
    assert FulfillmentService(db).access(fulfillment.access_token).code == results.NOT_FOUND


def test_expired_access_window(db, creator):
    _, fulfillment = download_order(db, creator, access_until=utcnow() - timedelta(minutes=1))
    result = FulfillmentService(db).access(fulfillment.access_token)
    assert result.code == results.EXPIRED
    db.refresh(fulfillment)
    assert fulfillment.download_count == 0


def test_redirect_delivery_is_not_counted(db, creator):
    content = {"delivery_type": "redirect", "redirect_url": "https://course.test/start", "redirect_name": "Course"}
    _, fulfillment = download_order(db, creator, content=content, max_downloads=1)
    service = FulfillmentService(db)

    for _ in range(3):
        result = service.access(fulfillment.access_token)
        assert result.data == {"url": "https://course.test/start", "name": "Course"}

    db.refresh(fulfillment)
    assert fulfillment.download_count == 0
    assert fulfillment.is_accessed is True


def test_buyer_view_hides_file_url(db, creator):
    order, fulfillment = download_order(db, creator)

    view = buyer_view(fulfillment)

    assert view["file_url"] == PROTECTED_URL_MARKER
    assert view["file_name"] == "ebook.pdf"
    assert fulfillment.content["file_url"] == FILE_CONTENT["file_url"]
    assert FulfillmentService(db).get_for_buyer(order.id).success


def test_buyer_sees_fulfillment_only_after_confirmation(db, booking_product):
    order = booking_order(db, booking_product)
    assert FulfillmentService(db).get_for_buyer(order.id).code == results.NOT_FOUND


def test_creator_fills_in_meeting_details(db, creator, booking_product):
    order = booking_order(db, booking_product)
    update = FulfillmentUpdate(meeting_url="https://zoom.us/j/123", notes="Join 5 minutes early")

    result = FulfillmentService(db).update_details(order.id, creator, update)

    assert result.success
    content = result.data.content
    assert content["meeting_url"] == "https://zoom.us/j/123"
    assert content["notes"] == "Join 5 minutes early"
    assert content["meeting_platform"] == "Zoom"


def test_details_are_private_to_the_owner(db, booking_product):
    order = booking_order(db, booking_product)
    stranger = make_creator(db)
    result = FulfillmentService(db).update_details(order.id, stranger, FulfillmentUpdate(notes="x"))
    assert result.code == results.NOT_FOUND


def test_download_content_cannot_be_edited(db, creator):
    order, _ = download_order(db, creator)
    result = FulfillmentService(db).update_details(order.id, creator, FulfillmentUpdate(notes="x"))
    assert result.code == results.VALIDATION_ERROR
