"""Slot repository - Database operations for booking slots.

Seat counting only ever happens through ``reserve`` and ``release``, which
are single conditional UPDATE statements. Neither commits; the caller owns
the transaction so a reservation can be combined with the order write.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import BookingSlot

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ["product_id", "slot_date", "start_time"]


@dataclass
class BulkInsertResult:
    requested: int
    inserted: int = 0
    processed: int = 0  # rows handled before stopping, duplicates included
    error: Optional[str] = None

    @property
    def skipped(self) -> int:
        return self.processed - self.inserted

    @property
    def completed(self) -> bool:
        return self.error is None


class SlotRepository:
    """Repository for booking slot database operations"""

    @staticmethod
    def get_slot(db: Session, slot_id: int, creator_id: Optional[int] = None) -> Optional[BookingSlot]:
        query = db.query(BookingSlot).filter(BookingSlot.id == slot_id)
        if creator_id is not None:
            query = query.filter(BookingSlot.creator_id == creator_id)
        return query.first()

    @staticmethod
    def get_product_slot(db: Session, slot_id: int, product_id: int) -> Optional[BookingSlot]:
        return (
            db.query(BookingSlot)
            .filter(BookingSlot.id == slot_id, BookingSlot.product_id == product_id)
            .first()
        )

    @staticmethod
    def list_product_slots(
        db: Session, product_id: int, from_date: Optional[date] = None
    ) -> list[BookingSlot]:
        """All slots of a product ordered by date then start time"""
        query = db.query(BookingSlot).filter(BookingSlot.product_id == product_id)
        if from_date is not None:
            query = query.filter(BookingSlot.slot_date >= from_date)
        return query.order_by(BookingSlot.slot_date, BookingSlot.start_time).all()

    @staticmethod
    def list_slots_on_date(db: Session, product_id: int, slot_date: date) -> list[BookingSlot]:
        return (
            db.query(BookingSlot)
            .filter(BookingSlot.product_id == product_id, BookingSlot.slot_date == slot_date)
            .order_by(BookingSlot.start_time)
            .all()
        )

    @staticmethod
    def _insert_statement(db: Session, chunk: list[dict]):
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(BookingSlot).values(chunk)
        elif dialect == "sqlite":
            stmt = sqlite.insert(BookingSlot).values(chunk)
        else:
            return None
        return stmt.on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)

    @staticmethod
    def _insert_rows_one_by_one(db: Session, chunk: list[dict]) -> int:
        """Fallback for engines without ON CONFLICT: savepoint per row"""
        inserted = 0
        for row in chunk:
            try:
                with db.begin_nested():
                    db.add(BookingSlot(**row))
                inserted += 1
            except IntegrityError:
                logger.debug(f"Slot already exists, skipping: {row['slot_date']} {row['start_time']}")
        return inserted

    @staticmethod
    def insert_ignore_duplicates(db: Session, rows: list[dict], chunk_size: int) -> BulkInsertResult:
        """Insert slot rows, skipping ones that collide on (product, date, start).

        Rows go in chunks and each chunk is committed on its own. When a chunk
        fails the earlier chunks stay committed and the result reports how
        far the insert got.
        """
        result = BulkInsertResult(requested=len(rows))
        for offset in range(0, len(rows), chunk_size):
            chunk = rows[offset : offset + chunk_size]
            try:
                stmt = SlotRepository._insert_statement(db, chunk)
                if stmt is None:
                    inserted = SlotRepository._insert_rows_one_by_one(db, chunk)
                else:
                    inserted = db.execute(stmt).rowcount or 0
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(
                    f"❌ Slot insert failed at chunk starting {offset} "
                    f"({result.inserted} inserted so far): {e}"
                )
                result.error = "Some slots could not be saved. Please try again."
                return result
            result.inserted += inserted
            result.processed += len(chunk)
        return result

    @staticmethod
    def reserve(db: Session, slot_id: int) -> bool:
        """Take one seat if the slot has capacity left. Does not commit."""
        updated = (
            db.query(BookingSlot)
            .filter(
                BookingSlot.id == slot_id,
                BookingSlot.current_bookings < BookingSlot.max_bookings,
            )
            .update(
                {
                    BookingSlot.current_bookings: BookingSlot.current_bookings + 1,
                    BookingSlot.is_booked: True,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def release(db: Session, slot_id: int) -> bool:
        """Give one seat back; never goes below zero. Does not commit."""
        updated = (
            db.query(BookingSlot)
            .filter(BookingSlot.id == slot_id, BookingSlot.current_bookings > 0)
            .update(
                {
                    BookingSlot.current_bookings: BookingSlot.current_bookings - 1,
                    BookingSlot.is_booked: case((BookingSlot.current_bookings > 1, True), else_=False),
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            logger.warning(f"⚠️ Release skipped for slot {slot_id}: no bookings to release")
        return updated == 1

    @staticmethod
    def delete_if_unbooked(db: Session, slot_id: int, creator_id: int) -> int:
        """Delete only while nobody holds a seat"""
        deleted = (
            db.query(BookingSlot)
            .filter(
                BookingSlot.id == slot_id,
                BookingSlot.creator_id == creator_id,
                BookingSlot.current_bookings == 0,
            )
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def set_availability(db: Session, slot: BookingSlot, is_available: bool) -> BookingSlot:
        slot.is_available = is_available
        db.commit()
        db.refresh(slot)
        return slot

    @staticmethod
    def update_max_bookings(db: Session, slot_id: int, creator_id: int, max_bookings: int) -> int:
        """Change capacity unless it would drop below the seats already taken"""
        updated = (
            db.query(BookingSlot)
            .filter(
                BookingSlot.id == slot_id,
                BookingSlot.creator_id == creator_id,
                BookingSlot.current_bookings <= max_bookings,
            )
            .update({BookingSlot.max_bookings: max_bookings}, synchronize_session=False)
        )
        db.commit()
        return updated
