"""Fulfillment service - what the buyer receives once an order is confirmed"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Creator, Fulfillment
from ...shared import results
from ...shared.clock import utcnow
from ...shared.results import OperationResult
from ...utils.sanitization import sanitize_content
from ..orders.state_machine import OrderStatus
from .repository import FulfillmentRepository
from .schemas import PROTECTED_URL_MARKER, FulfillmentType, FulfillmentUpdate

logger = logging.getLogger(__name__)

EDITABLE_TYPES = {FulfillmentType.BOOKING_DETAILS.value, FulfillmentType.LIVE_ACCESS.value}


def buyer_view(fulfillment: Fulfillment) -> dict:
    """Content as shown to the buyer; direct file URLs only go out via the access link"""
    content = dict(fulfillment.content or {})
    if fulfillment.type == FulfillmentType.DOWNLOAD.value and content.get("file_url"):
        content["file_url"] = PROTECTED_URL_MARKER
    return content


class FulfillmentService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = FulfillmentRepository()

    def update_details(
        self, order_id: str, creator: Creator, data: FulfillmentUpdate
    ) -> OperationResult:
        """Merge meeting / location / live access details into the content"""
        order = self.repo.get_order_with_fulfillment(self.db, order_id)
        if not order or order.creator_id != creator.id:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        fulfillment = order.fulfillment
        if not fulfillment:
            return OperationResult.fail("This order has no fulfillment", results.NOT_FOUND)
        if fulfillment.type not in EDITABLE_TYPES:
            return OperationResult.fail("Only booking and live details can be edited")

        patch = sanitize_content(data.model_dump(exclude_unset=True))
        merged = {**(fulfillment.content or {}), **patch}
        fulfillment = self.repo.update_content(self.db, fulfillment, merged)
        logger.info(f"✏️ Fulfillment details updated for order {order_id} by creator {creator.id}")
        return OperationResult.ok(fulfillment)

    def get_for_buyer(self, order_id: str) -> OperationResult:
        order = self.repo.get_order_with_fulfillment(self.db, order_id)
        if not order or not order.fulfillment:
            return OperationResult.fail("Fulfillment not found", results.NOT_FOUND)
        if order.status != OrderStatus.CONFIRMED.value:
            return OperationResult.fail(
                "Fulfillment is available once payment is confirmed", results.NOT_FOUND
            )
        return OperationResult.ok(order.fulfillment)

    def access(self, access_token: str, now: Optional[datetime] = None) -> OperationResult:
        """Resolve an access link to the deliverable URL.

        File downloads are counted against ``max_downloads``; redirect
        deliveries are only marked as accessed.
        """
        now = now or utcnow()
        fulfillment = self.repo.get_by_token(self.db, access_token)
        if not fulfillment or fulfillment.order.status != OrderStatus.CONFIRMED.value:
            return OperationResult.fail("Download link not found", results.NOT_FOUND)
        if fulfillment.access_until and fulfillment.access_until < now:
            return OperationResult.fail("This download link has expired", results.EXPIRED)

        content = fulfillment.content or {}
        if fulfillment.type != FulfillmentType.DOWNLOAD.value:
            return OperationResult.fail("This order has nothing to download", results.NOT_FOUND)

        if content.get("delivery_type") == "redirect":
            self.repo.mark_accessed(self.db, fulfillment, now)
            return OperationResult.ok(
                {"url": content.get("redirect_url"), "name": content.get("redirect_name")}
            )

        if not self.repo.record_download(self.db, fulfillment.id, now):
            logger.info(f"Download limit reached for fulfillment {fulfillment.id}")
            return OperationResult.fail(
                "Download limit reached for this order", results.DOWNLOAD_LIMIT
            )
        self.db.refresh(fulfillment)
        logger.info(
            f"📥 Download {fulfillment.download_count}/{fulfillment.max_downloads} "
            f"for order {fulfillment.order_id}"
        )
        return OperationResult.ok(
            {
                "url": content.get("file_url"),
                "name": content.get("file_name"),
                "download_count": fulfillment.download_count,
                "max_downloads": fulfillment.max_downloads,
            }
        )
