"""Fulfillment repository - Database operations for order deliverables"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Fulfillment, Order


class FulfillmentRepository:
    """Repository for fulfillment database operations"""

    @staticmethod
    def get_by_token(db: Session, access_token: str) -> Optional[Fulfillment]:
        return (
            db.query(Fulfillment)
            .options(joinedload(Fulfillment.order))
            .filter(Fulfillment.access_token == access_token)
            .first()
        )

    @staticmethod
    def add_fulfillment(
        db: Session,
        order_id: str,
        fulfillment_type: str,
        content: dict,
        max_downloads: int = 0,
        access_until: Optional[datetime] = None,
    ) -> Fulfillment:
        """Stage a fulfillment row. Does not commit."""
        fulfillment = Fulfillment(
            order_id=order_id,
            type=fulfillment_type,
            content=content,
            max_downloads=max_downloads,
            access_until=access_until,
        )
        db.add(fulfillment)
        return fulfillment

    @staticmethod
    def update_content(db: Session, fulfillment: Fulfillment, content: dict) -> Fulfillment:
        # Reassign so the JSON column is flagged dirty
        fulfillment.content = dict(content)
        db.commit()
        db.refresh(fulfillment)
        return fulfillment

    @staticmethod
    def record_download(db: Session, fulfillment_id: int, now: datetime) -> bool:
        """Count one download while under the limit"""
        updated = (
            db.query(Fulfillment)
            .filter(
                Fulfillment.id == fulfillment_id,
                Fulfillment.download_count < Fulfillment.max_downloads,
            )
            .update(
                {
                    Fulfillment.download_count: Fulfillment.download_count + 1,
                    Fulfillment.is_accessed: True,
                    Fulfillment.accessed_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1

    @staticmethod
    def mark_accessed(db: Session, fulfillment: Fulfillment, now: datetime) -> None:
        fulfillment.is_accessed = True
        fulfillment.accessed_at = now
        db.commit()

    @staticmethod
    def get_order_with_fulfillment(db: Session, order_id: str) -> Optional[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.fulfillment), joinedload(Order.product))
            .filter(Order.id == order_id)
            .first()
        )
