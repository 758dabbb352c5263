"""Booking reminders - email buyers about sessions starting in the next day or so"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import REMINDER_MAX_HOURS_AHEAD, REMINDER_MIN_HOURS_AHEAD
from ...models import Order
from ...services import notification_service
from ...services.notification_service import order_notice
from ...shared.clock import now_local, slot_start_at, to_local
from ..orders.repository import OrderRepository
from ..products.schemas import is_bookable

logger = logging.getLogger(__name__)

# Content keys worth repeating in the reminder email
REMINDER_DETAIL_KEYS = (
    "meeting_url",
    "meeting_platform",
    "location",
    "location_name",
    "location_notes",
    "platform",
    "access_url",
    "access_code",
    "notes",
)


def reminder_details(order: Order) -> dict:
    content = (order.fulfillment.content if order.fulfillment else None) or {}
    return {key: content[key] for key in REMINDER_DETAIL_KEYS if content.get(key)}


class ReminderService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    def due_orders(self, now: Optional[datetime] = None) -> list[Order]:
        """Confirmed bookings starting between 12 and 36 hours from now"""
        now = to_local(now) if now else now_local()
        window_start = now + timedelta(hours=REMINDER_MIN_HOURS_AHEAD)
        window_end = now + timedelta(hours=REMINDER_MAX_HOURS_AHEAD)
        candidates = self.repo.list_reminder_candidates(
            self.db, window_start.date(), window_end.date()
        )
        return [
            order
            for order in candidates
            if order.booking_time is not None
            and is_bookable(order.product.type)
            and window_start <= slot_start_at(order.booking_date, order.booking_time) <= window_end
        ]

    async def send_due_reminders(self, now: Optional[datetime] = None) -> dict:
        """Claim each due order before emailing so overlapping runs send one reminder"""
        due = self.due_orders(now)
        sent = failed = 0
        for order in due:
            notice, details = order_notice(order), reminder_details(order)
            if not self.repo.mark_reminder_sent(self.db, order.id):
                logger.info(f"Reminder for order {order.id} already claimed by another run")
                continue
            if await notification_service.notify_booking_reminder(notice, details):
                sent += 1
            else:
                self.repo.clear_reminder_sent(self.db, order.id)
                failed += 1
        logger.info(f"⏰ Booking reminders: {sent}/{len(due)} sent")
        return {"due": len(due), "sent": sent, "failed": failed}
