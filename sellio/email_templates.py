"""
MJML Email Templates
Transactional emails for orders, payments and bookings
"""

from typing import Optional

from .utils.sanitization import sanitize_string

THEME = {
    "primary": "#6366f1",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{sanitize_string(preview_text)}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Sent by Sellio on behalf of the store you ordered from.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _rows(details: dict) -> str:
    """Two-column detail table; values are escaped"""
    rows = "".join(
        f"<tr><td style=\"padding:4px 12px 4px 0;color:{THEME['text_muted']}\">{label}</td>"
        f"<td style=\"padding:4px 0;font-weight:600\">{sanitize_string(str(value))}</td></tr>"
        for label, value in details.items()
        if value not in (None, "")
    )
    return f"""
    <mj-table padding="8px 0 16px 0" font-size="15px">
      {rows}
    </mj-table>
    """


def _paragraph(text: str, color: Optional[str] = None) -> str:
    color_attr = f' color="{color}"' if color else ""
    return f"<mj-text padding=\"0 0 16px 0\"{color_attr}>{text}</mj-text>"


def new_order_template(
    creator_name: str, product_title: str, buyer_name: str, total: float, booking_when: Optional[str]
) -> str:
    content = _paragraph(f"Hi {sanitize_string(creator_name)}, you have a new order.") + _rows(
        {
            "Product": product_title,
            "Buyer": buyer_name,
            "Booking": booking_when,
            "Total": f"฿{total:,.2f}",
        }
    )
    return get_base_template("New order received", f"{buyer_name} ordered {product_title}", content)


def slip_review_template(
    creator_name: str, product_title: str, buyer_name: str, total: float, dashboard_url: str
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(creator_name)}, a payment slip is waiting for your review."
    ) + _rows({"Product": product_title, "Buyer": buyer_name, "Amount": f"฿{total:,.2f}"})
    return get_base_template(
        "Payment slip needs review",
        f"Review the slip from {buyer_name}",
        content,
        cta_url=dashboard_url,
        cta_label="Review payment",
    )


def payment_confirmed_template(
    buyer_name: str, product_title: str, total: float, booking_when: Optional[str], order_url: str
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(buyer_name)}, your payment has been confirmed. Thank you!"
    ) + _rows({"Product": product_title, "Booking": booking_when, "Paid": f"฿{total:,.2f}"})
    return get_base_template(
        "Payment confirmed",
        f"Your order for {product_title} is confirmed",
        content,
        cta_url=order_url,
        cta_label="View your order",
    )


def payment_rejected_template(buyer_name: str, product_title: str, reason: str) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(buyer_name)}, the seller could not confirm your payment "
        f"for {sanitize_string(product_title)} and the order has been cancelled."
    ) + _rows({"Reason": reason})
    return get_base_template("Payment not accepted", "Your payment could not be confirmed", content)


def order_cancelled_template(
    recipient_name: str, product_title: str, booking_when: Optional[str], reason: Optional[str]
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(recipient_name)}, the following booking has been cancelled."
    ) + _rows({"Product": product_title, "Booking": booking_when, "Reason": reason})
    return get_base_template("Booking cancelled", f"{product_title} booking cancelled", content)


def booking_rescheduled_template(
    recipient_name: str, product_title: str, old_when: str, new_when: str, order_url: Optional[str] = None
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(recipient_name)}, a booking has been moved to a new time."
    ) + _rows({"Product": product_title, "Previous time": old_when, "New time": new_when})
    return get_base_template(
        "Booking rescheduled",
        f"{product_title} moved to {new_when}",
        content,
        cta_url=order_url,
        cta_label="View booking" if order_url else None,
    )


def refund_processed_template(
    buyer_name: str, product_title: str, amount: float, note: Optional[str], slip_url: Optional[str]
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(buyer_name)}, your refund for {sanitize_string(product_title)} has been sent."
    ) + _rows({"Amount": f"฿{amount:,.2f}", "Note": note})
    return get_base_template(
        "Refund sent",
        f"Refund of ฿{amount:,.2f} sent",
        content,
        cta_url=slip_url,
        cta_label="View transfer slip" if slip_url else None,
    )


def booking_reminder_template(
    buyer_name: str,
    product_title: str,
    booking_when: str,
    details: dict,
    order_url: str,
) -> str:
    content = _paragraph(
        f"Hi {sanitize_string(buyer_name)}, this is a reminder of your upcoming session."
    ) + _rows({"Session": product_title, "When": booking_when, **details})
    return get_base_template(
        "Your session is coming up",
        f"{product_title} on {booking_when}",
        content,
        cta_url=order_url,
        cta_label="View booking",
    )
