"""Order domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_promptpay_id, validate_thai_phone
from ...utils.sanitization import sanitize_optional_text


class CheckoutCreate(BaseModel):
    """Schema for a buyer placing an order"""

    productId: int
    slotId: Optional[int] = None
    buyerName: str
    buyerEmail: str
    buyerPhone: Optional[str] = None
    buyerNote: Optional[str] = None
    couponCode: Optional[str] = None
    refundPromptpay: Optional[str] = None

    @field_validator("buyerName")
    @classmethod
    def validate_name(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Name is required")
        if len(v) > 255:
            raise ValueError("Name must be 255 characters or fewer")
        return v

    @field_validator("buyerEmail")
    @classmethod
    def validate_buyer_email(cls, v):
        if not v or not v.strip():
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("buyerPhone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_thai_phone(v)
        return v

    @field_validator("buyerNote")
    @classmethod
    def validate_note(cls, v):
        return sanitize_optional_text(v, max_length=1000)

    @field_validator("couponCode")
    @classmethod
    def normalize_coupon(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip().upper()

    @field_validator("refundPromptpay")
    @classmethod
    def validate_refund_promptpay(cls, v):
        if v:
            return validate_promptpay_id(v)
        return v


class PaymentRejectRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        v = sanitize_optional_text(v, max_length=500)
        if not v:
            raise ValueError("Please give a reason for rejecting the payment")
        return v


class PaymentInfo(BaseModel):
    status: str
    amount: float
    slipUrl: Optional[str] = None
    slipUploadedAt: Optional[datetime] = None
    slipVerified: Optional[bool] = None
    slipVerifyMessage: Optional[str] = None
    rejectionReason: Optional[str] = None
    confirmedAt: Optional[datetime] = None
    refundSlipUrl: Optional[str] = None
    refundNote: Optional[str] = None
    refundedAt: Optional[datetime] = None


class OrderResponse(BaseModel):
    """Schema for order response"""

    id: str
    productId: int
    productTitle: Optional[str] = None
    productType: Optional[str] = None
    status: str
    buyerName: str
    buyerEmail: str
    buyerPhone: Optional[str] = None
    buyerNote: Optional[str] = None
    slotId: Optional[int] = None
    bookingDate: Optional[date] = None
    bookingTime: Optional[str] = None
    rescheduleCount: int = 0
    couponCode: Optional[str] = None
    unitPrice: float
    discountAmount: float
    total: float
    cancelReason: Optional[str] = None
    expiresAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    confirmedAt: Optional[datetime] = None
    payment: Optional[PaymentInfo] = None


class OrderStatsResponse(BaseModel):
    total: int
    pendingPayment: int
    pendingConfirmation: int
    confirmed: int
    cancelled: int
    refunded: int
    revenue: float


class CalendarBookingResponse(BaseModel):
    """One booked session on the creator calendar"""

    id: str
    bookingDate: date
    bookingTime: Optional[str] = None
    status: str
    buyerName: str
    buyerEmail: str
    buyerPhone: Optional[str] = None
    productId: int
    productTitle: Optional[str] = None
    productType: Optional[str] = None
    details: Optional[dict] = None


def _payment_info(payment) -> Optional[PaymentInfo]:
    if payment is None:
        return None
    return PaymentInfo(
        status=payment.status,
        amount=payment.amount,
        slipUrl=payment.slip_url,
        slipUploadedAt=payment.slip_uploaded_at,
        slipVerified=payment.slip_verified,
        slipVerifyMessage=payment.slip_verify_message,
        rejectionReason=payment.rejection_reason,
        confirmedAt=payment.confirmed_at,
        refundSlipUrl=payment.refund_slip_url,
        refundNote=payment.refund_note,
        refundedAt=payment.refunded_at,
    )


def to_order_response(order) -> OrderResponse:
    product = order.product
    return OrderResponse(
        id=order.id,
        productId=order.product_id,
        productTitle=product.title if product else None,
        productType=product.type if product else None,
        status=order.status,
        buyerName=order.buyer_name,
        buyerEmail=order.buyer_email,
        buyerPhone=order.buyer_phone,
        buyerNote=order.buyer_note,
        slotId=order.slot_id,
        bookingDate=order.booking_date,
        bookingTime=order.booking_time.strftime("%H:%M") if order.booking_time else None,
        rescheduleCount=order.reschedule_count or 0,
        couponCode=order.coupon_code,
        unitPrice=order.unit_price,
        discountAmount=order.discount_amount,
        total=order.total,
        cancelReason=order.cancel_reason,
        expiresAt=order.expires_at,
        createdAt=order.created_at,
        confirmedAt=order.confirmed_at,
        payment=_payment_info(order.payment),
    )


def to_stats_response(counts: dict[str, int], revenue: float) -> OrderStatsResponse:
    return OrderStatsResponse(
        total=sum(counts.values()),
        pendingPayment=counts.get("pending_payment", 0),
        pendingConfirmation=counts.get("pending_confirmation", 0),
        confirmed=counts.get("confirmed", 0),
        cancelled=counts.get("cancelled", 0),
        refunded=counts.get("refunded", 0),
        revenue=revenue,
    )


def to_calendar_booking(order) -> CalendarBookingResponse:
    product = order.product
    fulfillment = order.fulfillment
    return CalendarBookingResponse(
        id=order.id,
        bookingDate=order.booking_date,
        bookingTime=order.booking_time.strftime("%H:%M") if order.booking_time else None,
        status=order.status,
        buyerName=order.buyer_name,
        buyerEmail=order.buyer_email,
        buyerPhone=order.buyer_phone,
        productId=order.product_id,
        productTitle=product.title if product else None,
        productType=product.type if product else None,
        details=dict(fulfillment.content or {}) if fulfillment else None,
    )
