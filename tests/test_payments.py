import asyncio
import io

from fastapi import UploadFile
from starlette.datastructures import Headers

from conftest import FakeVerifier, make_order, make_product, make_slot
from sellio.domain.orders.payment_service import PaymentService
from sellio.services.slip_verification import SlipVerificationResult
from sellio.services.storage_service import StorageError
from sellio.shared import results


def slip_file(content=b"\x89PNG fake image", content_type="image/png"):
    return UploadFile(
        file=io.BytesIO(content),
        filename="slip.png",
        headers=Headers({"content-type": content_type}),
    )


def upload(db, storage, verifier, order_id, file=None, auto_verify=True):
    service = PaymentService(db, storage, verifier, auto_verify=auto_verify)
    return asyncio.run(service.upload_slip(order_id, file or slip_file()))


def test_upload_stores_slip_and_leaves_order_for_review(db, booking_product, storage, verifier):
    order = make_order(db, booking_product, slot=make_slot(db, booking_product))

    result = upload(db, storage, verifier, order.id)

    assert result.success
    assert result.data.status == "pending_confirmation"
    assert result.data.payment.slip_verified is False
    assert storage.uploads[0]["prefix"] == "slips"
    assert verifier.calls[0]["expected_amount"] == 500


def test_verified_slip_confirms_order(db, booking_product, storage):
    order = make_order(db, booking_product, slot=make_slot(db, booking_product))
    verifier = FakeVerifier(SlipVerificationResult(True, True, "Slip verified successfully", amount=500))

    result = upload(db, storage, verifier, order.id)

    assert result.data.status == "confirmed"
    assert result.data.payment.slip_verified is True


def test_verification_skipped_when_disabled(db, booking_product, storage):
    order = make_order(db, booking_product)
    verifier = FakeVerifier(enabled=False)

    result = upload(db, storage, verifier, order.id)

    assert result.data.status == "pending_confirmation"
    assert result.data.payment.slip_verified is None
    assert verifier.calls == []


def test_rejects_non_image_upload(db, booking_product, storage, verifier):
    order = make_order(db, booking_product)
    result = upload(db, storage, verifier, order.id, file=slip_file(content_type="application/pdf"))
    assert result.code == results.VALIDATION_ERROR
    assert storage.uploads == []


def test_rejects_empty_upload(db, booking_product, storage, verifier):
    order = make_order(db, booking_product)
    result = upload(db, storage, verifier, order.id, file=slip_file(content=b""))
    assert result.code == results.VALIDATION_ERROR


def test_storage_failure_is_a_dependency_error(db, booking_product, verifier):
    class BrokenStorage:
        def upload(self, *args):
            raise StorageError("R2 unavailable")

    order = make_order(db, booking_product)
    result = upload(db, BrokenStorage(), verifier, order.id)

    assert result.code == results.DEPENDENCY_FAILURE
    db.expire_all()
    assert order.status == "pending_payment"


def test_upload_to_confirmed_order_is_rejected(db, booking_product, storage, verifier):
    order = make_order(db, booking_product, status="confirmed")
    result = upload(db, storage, verifier, order.id)
    assert result.code == results.INVALID_TRANSITION
    assert storage.uploads == []


def test_unknown_order(db, storage, verifier):
    assert upload(db, storage, verifier, "missing").code == results.NOT_FOUND


def test_refund_upload_marks_order_refunded(db, creator, storage, verifier):
    product = make_product(db, creator, product_type="digital")
    order = make_order(db, product, status="confirmed")
    service = PaymentService(db, storage, verifier)

    result = asyncio.run(service.submit_refund(order.id, creator, slip_file(), "Refunded in full"))

    assert result.data.status == "refunded"
    assert result.data.payment.refund_note == "Refunded in full"
    assert storage.uploads[0]["prefix"] == "refunds"
