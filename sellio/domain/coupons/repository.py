"""Coupon repository - Database operations for coupons"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Coupon


class CouponRepository:
    """Repository for coupon database operations"""

    @staticmethod
    def list_coupons(db: Session, creator_id: int) -> list[Coupon]:
        return (
            db.query(Coupon)
            .filter(Coupon.creator_id == creator_id)
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .all()
        )

    @staticmethod
    def get_coupon(db: Session, coupon_id: int, creator_id: int) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.id == coupon_id, Coupon.creator_id == creator_id).first()

    @staticmethod
    def get_by_code(db: Session, creator_id: int, code: str) -> Optional[Coupon]:
        return (
            db.query(Coupon)
            .filter(Coupon.creator_id == creator_id, func.upper(Coupon.code) == code.upper())
            .first()
        )

    @staticmethod
    def create_coupon(db: Session, creator_id: int, **coupon_data) -> Coupon:
        coupon = Coupon(creator_id=creator_id, **coupon_data)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    @staticmethod
    def update_coupon(db: Session, coupon: Coupon, **updates) -> Coupon:
        for key, value in updates.items():
            setattr(coupon, key, value)
        db.commit()
        db.refresh(coupon)
        return coupon

    @staticmethod
    def delete_coupon(db: Session, coupon: Coupon) -> None:
        db.delete(coupon)
        db.commit()

    @staticmethod
    def consume_use(db: Session, coupon_id: int) -> bool:
        """Count one use if the usage limit allows it. Does not commit."""
        updated = (
            db.query(Coupon)
            .filter(
                Coupon.id == coupon_id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .update({Coupon.usage_count: Coupon.usage_count + 1}, synchronize_session=False)
        )
        return updated == 1
