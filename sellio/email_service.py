"""
Email Service using Resend
Compiles MJML templates to HTML and sends order/booking emails
"""

import logging
from typing import Optional, Union

import resend
from resend.exceptions import ResendError
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    booking_reminder_template,
    booking_rescheduled_template,
    new_order_template,
    order_cancelled_template,
    payment_confirmed_template,
    payment_rejected_template,
    refund_processed_template,
    slip_review_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # mjml_to_html returns a dict-like with 'html' and 'errors'
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return getattr(result, "html", str(result))


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except ResendError as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e


def order_url(order_id: str) -> str:
    return f"{FRONTEND_URL}/checkout/{order_id}/success"


def dashboard_order_url(order_id: str) -> str:
    return f"{FRONTEND_URL}/dashboard/orders/{order_id}"


async def send_new_order_notification(
    to: str, creator_name: str, product_title: str, buyer_name: str, total: float, booking_when: Optional[str]
) -> dict:
    return await send_email(
        to=to,
        subject=f"New order: {product_title}",
        mjml_content=new_order_template(creator_name, product_title, buyer_name, total, booking_when),
    )


async def send_slip_review_notification(
    to: str, creator_name: str, order_id: str, product_title: str, buyer_name: str, total: float
) -> dict:
    return await send_email(
        to=to,
        subject=f"Payment slip to review: {product_title}",
        mjml_content=slip_review_template(
            creator_name, product_title, buyer_name, total, dashboard_order_url(order_id)
        ),
    )


async def send_payment_confirmed_email(
    to: str, buyer_name: str, order_id: str, product_title: str, total: float, booking_when: Optional[str]
) -> dict:
    return await send_email(
        to=to,
        subject=f"Payment confirmed - {product_title}",
        mjml_content=payment_confirmed_template(
            buyer_name, product_title, total, booking_when, order_url(order_id)
        ),
    )


async def send_payment_rejected_email(to: str, buyer_name: str, product_title: str, reason: str) -> dict:
    return await send_email(
        to=to,
        subject=f"Payment not accepted - {product_title}",
        mjml_content=payment_rejected_template(buyer_name, product_title, reason),
    )


async def send_booking_cancelled_email(
    to: str, recipient_name: str, product_title: str, booking_when: Optional[str], reason: Optional[str]
) -> dict:
    return await send_email(
        to=to,
        subject=f"Booking cancelled - {product_title}",
        mjml_content=order_cancelled_template(recipient_name, product_title, booking_when, reason),
    )


async def send_booking_rescheduled_email(
    to: str,
    recipient_name: str,
    product_title: str,
    old_when: str,
    new_when: str,
    link: Optional[str] = None,
) -> dict:
    return await send_email(
        to=to,
        subject=f"Booking rescheduled - {product_title}",
        mjml_content=booking_rescheduled_template(recipient_name, product_title, old_when, new_when, link),
    )


async def send_refund_email(
    to: str, buyer_name: str, product_title: str, amount: float, note: Optional[str], slip_url: Optional[str]
) -> dict:
    return await send_email(
        to=to,
        subject=f"Refund sent - {product_title}",
        mjml_content=refund_processed_template(buyer_name, product_title, amount, note, slip_url),
    )


async def send_booking_reminder_email(
    to: str, buyer_name: str, order_id: str, product_title: str, booking_when: str, details: dict
) -> dict:
    return await send_email(
        to=to,
        subject=f"Reminder: {product_title} on {booking_when}",
        mjml_content=booking_reminder_template(
            buyer_name, product_title, booking_when, details, order_url(order_id)
        ),
    )
