"""Order repository - Database operations for orders and payments"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Order, Payment
from ..slots.repository import SlotRepository
from .state_machine import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_order(db: Session, order_id: str) -> Optional[Order]:
        return (
            db.query(Order)
            .options(
                joinedload(Order.product),
                joinedload(Order.creator),
                joinedload(Order.payment),
                joinedload(Order.fulfillment),
            )
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def get_creator_order(db: Session, order_id: str, creator_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.payment), joinedload(Order.fulfillment))
            .filter(Order.id == order_id, Order.creator_id == creator_id)
            .first()
        )

    @staticmethod
    def list_creator_orders(
        db: Session,
        creator_id: int,
        status: Optional[str] = None,
        product_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        query = (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.payment))
            .filter(Order.creator_id == creator_id)
        )
        if status:
            query = query.filter(Order.status == status)
        if product_id:
            query = query.filter(Order.product_id == product_id)
        return query.order_by(Order.created_at.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def list_calendar_bookings(
        db: Session,
        creator_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Order]:
        """Booked sessions that still take place, in session order"""
        query = (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.fulfillment))
            .filter(
                Order.creator_id == creator_id,
                Order.booking_date.isnot(None),
                Order.status.in_(["confirmed", "pending_confirmation"]),
            )
        )
        if start_date:
            query = query.filter(Order.booking_date >= start_date)
        if end_date:
            query = query.filter(Order.booking_date <= end_date)
        return query.order_by(Order.booking_date, Order.booking_time).all()

    @staticmethod
    def status_counts(db: Session, creator_id: int) -> dict[str, int]:
        rows = (
            db.query(Order.status, func.count(Order.id))
            .filter(Order.creator_id == creator_id)
            .group_by(Order.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def confirmed_revenue(db: Session, creator_id: int) -> float:
        total = (
            db.query(func.coalesce(func.sum(Order.total), 0))
            .filter(Order.creator_id == creator_id, Order.status == "confirmed")
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def count_active_orders_for_buyer(db: Session, product_id: int, buyer_email: str) -> int:
        return (
            db.query(func.count(Order.id))
            .filter(
                Order.product_id == product_id,
                func.lower(Order.buyer_email) == buyer_email.lower(),
                Order.status.in_(ACTIVE_STATUSES),
            )
            .scalar()
        )

    @staticmethod
    def count_coupon_uses_by_buyer(db: Session, coupon_id: int, buyer_email: str) -> int:
        return (
            db.query(func.count(Order.id))
            .filter(
                Order.coupon_id == coupon_id,
                func.lower(Order.buyer_email) == buyer_email.lower(),
            )
            .scalar()
        )

    @staticmethod
    def list_reminder_candidates(db: Session, first_day: date, last_day: date) -> list[Order]:
        """Confirmed bookings in a date range that have not been reminded yet"""
        return (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.fulfillment))
            .filter(
                Order.status == "confirmed",
                Order.reminder_sent.is_(False),
                Order.booking_date.isnot(None),
                Order.booking_date >= first_day,
                Order.booking_date <= last_day,
            )
            .order_by(Order.booking_date, Order.booking_time)
            .all()
        )

    @staticmethod
    def mark_reminder_sent(db: Session, order_id: str) -> bool:
        updated = (
            db.query(Order)
            .filter(Order.id == order_id, Order.reminder_sent.is_(False))
            .update({Order.reminder_sent: True}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def clear_reminder_sent(db: Session, order_id: str) -> None:
        """Hand an undelivered reminder back to the next run"""
        db.query(Order).filter(Order.id == order_id).update(
            {Order.reminder_sent: False}, synchronize_session=False
        )
        db.commit()

    @staticmethod
    def reserve_for_order(db: Session, order_id: str, slot_id: int) -> bool:
        """Take a seat for an order that does not hold one yet. Does not commit."""
        claimed = (
            db.query(Order)
            .filter(Order.id == order_id, Order.slot_reserved.is_(False))
            .update({Order.slot_reserved: True}, synchronize_session=False)
        )
        if claimed != 1:
            # Already holding a seat
            return True
        return SlotRepository.reserve(db, slot_id)

    @staticmethod
    def release_for_order(db: Session, order: Order) -> Optional[int]:
        """Give back the order's seat exactly once. Does not commit.

        Returns the released slot id, or None when the order held no seat.
        """
        if not order.slot_id:
            return None
        claimed = (
            db.query(Order)
            .filter(Order.id == order.id, Order.slot_reserved.is_(True))
            .update({Order.slot_reserved: False}, synchronize_session=False)
        )
        if claimed != 1:
            return None
        SlotRepository.release(db, order.slot_id)
        return order.slot_id

    @staticmethod
    def update_payment(db: Session, order_id: str, **changes) -> int:
        """Write payment columns. Does not commit."""
        values = {getattr(Payment, key): value for key, value in changes.items()}
        return (
            db.query(Payment)
            .filter(Payment.order_id == order_id)
            .update(values, synchronize_session=False)
        )

    @staticmethod
    def expired_unpaid_orders(db: Session, now: datetime) -> list[Order]:
        return (
            db.query(Order)
            .filter(
                Order.status == "pending_payment",
                Order.expires_at.isnot(None),
                Order.expires_at < now,
            )
            .all()
        )
