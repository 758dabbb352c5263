"""
Order notification dispatch
Fire-and-forget emails for order events. Failures are logged and never
affect the order operation that triggered them.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from .. import email_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderNotice:
    """Plain copy of the order fields emails need (safe after the session closes)"""

    order_id: str
    product_title: str
    buyer_name: str
    buyer_email: str
    creator_name: str
    creator_email: Optional[str]
    total: float
    booking_when: Optional[str]


def format_booking_when(booking_date: Optional[date], booking_time: Optional[time]) -> Optional[str]:
    if not booking_date:
        return None
    label = booking_date.strftime("%a %d %b %Y")
    if booking_time:
        label += f", {booking_time.strftime('%H:%M')}"
    return label


def order_notice(order) -> OrderNotice:
    creator = order.creator
    return OrderNotice(
        order_id=order.id,
        product_title=order.product.title if order.product else "your order",
        buyer_name=order.buyer_name,
        buyer_email=order.buyer_email,
        creator_name=(creator.display_name or creator.username) if creator else "",
        creator_email=creator.email if creator else None,
        total=order.total,
        booking_when=format_booking_when(order.booking_date, order.booking_time),
    )


async def send_notification(notification_type: str, recipient: Optional[str], email_func, **email_kwargs) -> bool:
    """
    Send one email and swallow delivery errors

    Returns:
        True when the email was handed to the provider
    """
    if not recipient:
        logger.debug(f"⚠️ No email address for {notification_type} notification")
        return False
    try:
        logger.info(f"📧 Sending {notification_type} email to {recipient}")
        await email_func(to=recipient, **email_kwargs)
        logger.info(f"✅ {notification_type} email sent successfully to {recipient}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send {notification_type} email to {recipient}: {e}")
        return False


async def notify_new_order(notice: OrderNotice) -> None:
    await send_notification(
        "new_order",
        notice.creator_email,
        email_service.send_new_order_notification,
        creator_name=notice.creator_name,
        product_title=notice.product_title,
        buyer_name=notice.buyer_name,
        total=notice.total,
        booking_when=notice.booking_when,
    )


async def notify_slip_uploaded(notice: OrderNotice) -> None:
    await send_notification(
        "slip_review",
        notice.creator_email,
        email_service.send_slip_review_notification,
        creator_name=notice.creator_name,
        order_id=notice.order_id,
        product_title=notice.product_title,
        buyer_name=notice.buyer_name,
        total=notice.total,
    )


async def notify_payment_confirmed(notice: OrderNotice) -> None:
    await send_notification(
        "payment_confirmed",
        notice.buyer_email,
        email_service.send_payment_confirmed_email,
        buyer_name=notice.buyer_name,
        order_id=notice.order_id,
        product_title=notice.product_title,
        total=notice.total,
        booking_when=notice.booking_when,
    )


async def notify_payment_rejected(notice: OrderNotice, reason: str) -> None:
    await send_notification(
        "payment_rejected",
        notice.buyer_email,
        email_service.send_payment_rejected_email,
        buyer_name=notice.buyer_name,
        product_title=notice.product_title,
        reason=reason,
    )


async def notify_booking_cancelled(notice: OrderNotice, reason: Optional[str], cancelled_by_buyer: bool) -> None:
    """Tell the other party (and the buyer, when the creator cancelled)"""
    await send_notification(
        "booking_cancelled",
        notice.creator_email,
        email_service.send_booking_cancelled_email,
        recipient_name=notice.creator_name,
        product_title=notice.product_title,
        booking_when=notice.booking_when,
        reason=reason,
    )
    if not cancelled_by_buyer:
        await send_notification(
            "booking_cancelled",
            notice.buyer_email,
            email_service.send_booking_cancelled_email,
            recipient_name=notice.buyer_name,
            product_title=notice.product_title,
            booking_when=notice.booking_when,
            reason=reason,
        )


async def notify_booking_rescheduled(notice: OrderNotice, old_when: Optional[str]) -> None:
    for recipient, name, link in (
        (notice.buyer_email, notice.buyer_name, email_service.order_url(notice.order_id)),
        (notice.creator_email, notice.creator_name, email_service.dashboard_order_url(notice.order_id)),
    ):
        await send_notification(
            "booking_rescheduled",
            recipient,
            email_service.send_booking_rescheduled_email,
            recipient_name=name,
            product_title=notice.product_title,
            old_when=old_when or "-",
            new_when=notice.booking_when or "-",
            link=link,
        )


async def notify_refund(notice: OrderNotice, note: Optional[str], slip_url: Optional[str]) -> None:
    await send_notification(
        "refund",
        notice.buyer_email,
        email_service.send_refund_email,
        buyer_name=notice.buyer_name,
        product_title=notice.product_title,
        amount=notice.total,
        note=note,
        slip_url=slip_url,
    )


async def notify_booking_reminder(notice: OrderNotice, details: dict) -> bool:
    return await send_notification(
        "booking_reminder",
        notice.buyer_email,
        email_service.send_booking_reminder_email,
        buyer_name=notice.buyer_name,
        order_id=notice.order_id,
        product_title=notice.product_title,
        booking_when=notice.booking_when or "",
        details=details,
    )
