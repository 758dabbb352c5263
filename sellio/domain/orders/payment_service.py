"""Slip upload flow: validate the file, store it, attach it, verify it"""

import asyncio
import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from ...config import ALLOWED_SLIP_TYPES, MAX_SLIP_SIZE_BYTES, SLIP_AUTO_VERIFY
from ...models import Creator
from ...services.slip_verification import SlipVerifier
from ...services.storage_service import SlipStorage, StorageError
from ...shared import results
from ...shared.results import OperationResult
from .service import OrderService
from .state_machine import OrderEvent, OrderStatus, can_apply

logger = logging.getLogger(__name__)


async def read_slip(file: UploadFile) -> OperationResult:
    """Read an uploaded image, enforcing type and size"""
    if file.content_type not in ALLOWED_SLIP_TYPES:
        return OperationResult.fail("Slip must be a JPEG, PNG or WebP image")
    content = await file.read()
    if not content:
        return OperationResult.fail("The uploaded file is empty")
    if len(content) > MAX_SLIP_SIZE_BYTES:
        max_mb = MAX_SLIP_SIZE_BYTES // (1024 * 1024)
        return OperationResult.fail(f"Slip image must be {max_mb}MB or smaller")
    return OperationResult.ok(content)


class PaymentService:
    """Coordinates storage and verification around the order lifecycle"""

    def __init__(
        self,
        db: Session,
        storage: SlipStorage,
        verifier: SlipVerifier,
        auto_verify: bool = SLIP_AUTO_VERIFY,
    ):
        self.db = db
        self.orders = OrderService(db)
        self.storage = storage
        self.verifier = verifier
        self.auto_verify = auto_verify

    async def _store(self, prefix: str, order_id: str, file: UploadFile) -> OperationResult:
        read = await read_slip(file)
        if not read:
            return read
        try:
            url = await asyncio.to_thread(
                self.storage.upload, prefix, order_id, read.data, file.content_type
            )
        except StorageError as e:
            logger.error(f"❌ Slip storage failed for order {order_id}: {e}")
            return OperationResult.fail(
                "Could not upload the slip right now. Please try again.", results.DEPENDENCY_FAILURE
            )
        return OperationResult.ok(url)

    async def upload_slip(self, order_id: str, file: UploadFile) -> OperationResult:
        """Buyer uploads a payment slip; verified slips confirm the order immediately"""
        found = self.orders.get_order(order_id)
        if not found:
            return found
        order = found.data

        # Expired orders are cancelled by attach_slip without storing anything
        if order.status == OrderStatus.PENDING_PAYMENT.value and self.orders.is_expired(order):
            return self.orders.attach_slip(order_id, "")
        if not can_apply(order.status, OrderEvent.UPLOAD_SLIP):
            return OperationResult.fail("This order is not waiting for payment", results.INVALID_TRANSITION)

        stored = await self._store("slips", order_id, file)
        if not stored:
            return stored

        attached = self.orders.attach_slip(order_id, stored.data)
        if not attached or not self.auto_verify or not self.verifier.enabled:
            return attached

        verification = await self.verifier.verify(stored.data, attached.data.total)
        logger.info(
            f"🔍 Slip verification for order {order_id}: "
            f"verified={verification.verified} ({verification.message})"
        )
        return self.orders.apply_verification(order_id, verification)

    async def submit_refund(
        self,
        order_id: str,
        creator: Creator,
        file: UploadFile,
        note: Optional[str] = None,
    ) -> OperationResult:
        """Creator uploads the refund transfer slip and the order becomes refunded"""
        found = self.orders.get_creator_order(order_id, creator)
        if not found:
            return found
        order = found.data
        if order.status == OrderStatus.REFUNDED.value:
            return OperationResult.ok(order, changed=False)
        if not can_apply(order.status, OrderEvent.REFUND):
            return OperationResult.fail(
                f"Cannot refund an order that is {order.status}", results.INVALID_TRANSITION
            )

        stored = await self._store("refunds", order_id, file)
        if not stored:
            return stored
        return self.orders.refund_order(order_id, creator, stored.data, note)
