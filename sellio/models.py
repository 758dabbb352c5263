import secrets
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def generate_access_token():
    """Unguessable token for buyer-side fulfillment links"""
    return secrets.token_urlsafe(32)


class Creator(Base):
    __tablename__ = "creators"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    promptpay_id = Column(String(20), nullable=True)  # phone or national ID
    promptpay_name = Column(String(255), nullable=True)
    contact_line = Column(String(100), nullable=True)
    contact_ig = Column(String(100), nullable=True)
    is_published = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    products = relationship("Product", back_populates="creator")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("creators.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)  # digital, booking, live, link
    price = Column(Float, nullable=False, default=0)
    is_published = Column(Boolean, default=False, nullable=False)
    # Type-specific settings, validated by domain.products.schemas.parse_product_config
    type_config = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("Creator", back_populates="products")
    slots = relationship("BookingSlot", back_populates="product")


class BookingSlot(Base):
    __tablename__ = "booking_slots"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("creators.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # exclusive
    max_bookings = Column(Integer, nullable=False, default=1)
    current_bookings = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)  # creator visibility toggle
    is_booked = Column(Boolean, nullable=False, default=False)  # current_bookings > 0
    created_at = Column(DateTime, server_default=func.now())

    product = relationship("Product", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("product_id", "slot_date", "start_time", name="uq_slot_product_date_start"),
        CheckConstraint("max_bookings >= 1", name="check_slot_max_bookings_positive"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_bookings",
            name="check_slot_capacity",
        ),
        CheckConstraint("end_time > start_time", name="check_slot_time_range"),
    )

    @property
    def remaining(self) -> int:
        return max(0, (self.max_bookings or 1) - (self.current_bookings or 0))

    def __repr__(self) -> str:
        return (
            f"<BookingSlot(id={self.id}, product={self.product_id}, date={self.slot_date}, "
            f"start={self.start_time}, {self.current_bookings}/{self.max_bookings})>"
        )


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("creators.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)  # stored upper-case
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Float, nullable=False)
    min_purchase = Column(Float, nullable=False, default=0)
    max_discount = Column(Float, nullable=True)  # cap for percentage coupons
    usage_limit = Column(Integer, nullable=True)  # null = unlimited
    per_user_limit = Column(Integer, nullable=False, default=1)
    usage_count = Column(Integer, nullable=False, default=0)
    product_ids = Column(JSON, nullable=True)
    product_types = Column(JSON, nullable=True)
    starts_at = Column(DateTime, nullable=True)  # UTC
    expires_at = Column(DateTime, nullable=True)  # UTC
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("creator_id", "code", name="uq_coupon_creator_code"),)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("creators.id"), nullable=False, index=True)
    buyer_name = Column(String(255), nullable=False)
    buyer_email = Column(String(255), nullable=False, index=True)  # lower-case
    buyer_phone = Column(String(50), nullable=True)
    buyer_note = Column(Text, nullable=True)
    refund_promptpay = Column(String(20), nullable=True)

    # Deleting an emptied slot keeps the order and its booking_date/booking_time snapshot
    slot_id = Column(Integer, ForeignKey("booking_slots.id", ondelete="SET NULL"), nullable=True, index=True)
    # True while slot_id holds one seat in booking_slots.current_bookings
    slot_reserved = Column(Boolean, nullable=False, default=False)
    # Snapshot copied from the slot at creation/reschedule time, never joined live
    booking_date = Column(Date, nullable=True)
    booking_time = Column(Time, nullable=True)

    status = Column(String(30), nullable=False, default="pending_payment", index=True)
    cancel_reason = Column(Text, nullable=True)
    reschedule_count = Column(Integer, nullable=False, default=0)

    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    coupon_code = Column(String(50), nullable=True)
    coupon_counted = Column(Boolean, nullable=False, default=False)
    unit_price = Column(Float, nullable=False, default=0)
    discount_amount = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False, default=0)

    expires_at = Column(DateTime, nullable=True)  # UTC, unpaid orders only
    reminder_sent = Column(Boolean, nullable=False, default=False)
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    product = relationship("Product")
    creator = relationship("Creator")
    slot = relationship("BookingSlot")
    coupon = relationship("Coupon")
    payment = relationship("Payment", back_populates="order", uselist=False)
    fulfillment = relationship("Fulfillment", back_populates="order", uselist=False)

    __table_args__ = (
        CheckConstraint("reschedule_count >= 0", name="check_order_reschedule_count"),
        CheckConstraint("total >= 0", name="check_order_total"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), unique=True, nullable=False)
    amount = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")  # pending, confirmed, failed, refunded
    slip_url = Column(String(500), nullable=True)
    slip_uploaded_at = Column(DateTime, nullable=True)
    # None = not checked, True = verified, False = verification failed (needs review)
    slip_verified = Column(Boolean, nullable=True)
    slip_verify_ref = Column(String(255), nullable=True)
    slip_verify_message = Column(Text, nullable=True)
    slip_verified_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(String(50), nullable=True)  # creator id or "slip_verification"
    refund_slip_url = Column(String(500), nullable=True)
    refund_note = Column(Text, nullable=True)
    refund_amount = Column(Float, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    order = relationship("Order", back_populates="payment")


class Fulfillment(Base):
    __tablename__ = "fulfillments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), unique=True, nullable=False)
    type = Column(String(30), nullable=False)  # download, booking_details, live_access
    content = Column(JSON, default=dict, nullable=False)
    access_token = Column(String(64), unique=True, index=True, default=generate_access_token)
    download_count = Column(Integer, nullable=False, default=0)
    max_downloads = Column(Integer, nullable=False, default=5)
    access_until = Column(DateTime, nullable=True)  # UTC
    is_accessed = Column(Boolean, nullable=False, default=False)
    accessed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="fulfillment")

    __table_args__ = (
        CheckConstraint(
            "download_count >= 0 AND download_count <= max_downloads",
            name="check_fulfillment_download_count",
        ),
    )
