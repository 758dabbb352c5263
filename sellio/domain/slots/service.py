"""Slot service - Business logic for creating and managing booking slots"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import SLOT_INSERT_CHUNK_SIZE
from ...models import Creator
from ...shared import results
from ...shared.clock import now_local, today_local
from ...shared.results import OperationResult
from ..products.repository import ProductRepository
from ..products.schemas import is_bookable, parse_product_config
from .capacity import offerable_slots
from .generator import SlotGenerationError, build_batch, build_recurring, single_slot
from .repository import SlotRepository
from .schemas import BatchSlotCreate, RecurringSlotCreate, SlotCreate

logger = logging.getLogger(__name__)


class SlotService:
    """Service layer for slot generation and creator-side slot management"""

    def __init__(self, db: Session, chunk_size: int = SLOT_INSERT_CHUNK_SIZE):
        self.db = db
        self.repo = SlotRepository()
        self.chunk_size = chunk_size

    def _bookable_product(self, product_id: int, creator: Creator):
        product = ProductRepository.get_creator_product(self.db, product_id, creator.id)
        if not product:
            return None, OperationResult.fail("Product not found", results.NOT_FOUND)
        if not is_bookable(product.type):
            return None, OperationResult.fail("This product does not use time slots")
        return product, None

    def _persist(self, product, specs, max_bookings: int) -> OperationResult:
        rows = [spec.as_row(product.id, product.creator_id, max_bookings) for spec in specs]
        outcome = self.repo.insert_ignore_duplicates(self.db, rows, self.chunk_size)

        if not outcome.completed:
            logger.warning(
                f"⚠️ Partial slot generation for product {product.id}: "
                f"{outcome.inserted}/{outcome.requested} inserted"
            )
            return OperationResult.fail(outcome.error, results.PARTIAL_FAILURE, data=outcome)

        logger.info(
            f"✅ Slots generated for product {product.id}: "
            f"{outcome.inserted} new, {outcome.skipped} already existed"
        )
        return OperationResult.ok(outcome, changed=outcome.inserted > 0)

    def create_slot(self, data: SlotCreate, creator: Creator) -> OperationResult:
        """Create one slot. Creating an existing (date, start) again is a no-op."""
        product, error = self._bookable_product(data.productId, creator)
        if error is not None:
            return error
        config = parse_product_config(product)
        try:
            spec = single_slot(data.slotDate, data.startTime, config.duration_minutes, data.endTime)
        except SlotGenerationError as e:
            return OperationResult.fail(str(e))
        return self._persist(product, [spec], data.maxBookings)

    def create_batch(self, data: BatchSlotCreate, creator: Creator) -> OperationResult:
        product, error = self._bookable_product(data.productId, creator)
        if error is not None:
            return error
        duration = data.durationMinutes or parse_product_config(product).duration_minutes
        try:
            specs = build_batch(data.slotDate, data.startTime, data.endTime, duration)
        except SlotGenerationError as e:
            return OperationResult.fail(str(e))
        return self._persist(product, specs, data.maxBookings)

    def create_recurring(
        self, data: RecurringSlotCreate, creator: Creator, now: Optional[datetime] = None
    ) -> OperationResult:
        product, error = self._bookable_product(data.productId, creator)
        if error is not None:
            return error
        duration = data.durationMinutes or parse_product_config(product).duration_minutes
        try:
            specs = build_recurring(
                data.daysOfWeek,
                data.weeks,
                data.startTime,
                data.endTime,
                duration,
                today=today_local(now),
            )
        except SlotGenerationError as e:
            return OperationResult.fail(str(e))
        if not specs:
            return OperationResult.fail("No dates match the selected days")
        return self._persist(product, specs, data.maxBookings)

    def list_slots(self, product_id: int, creator: Creator) -> OperationResult:
        product, error = self._bookable_product(product_id, creator)
        if error is not None:
            return error
        return OperationResult.ok(self.repo.list_product_slots(self.db, product.id))

    def delete_slot(self, slot_id: int, creator: Creator) -> OperationResult:
        slot = self.repo.get_slot(self.db, slot_id, creator.id)
        if not slot:
            return OperationResult.fail("Slot not found", results.NOT_FOUND)
        if not self.repo.delete_if_unbooked(self.db, slot_id, creator.id):
            return OperationResult.fail(
                "This slot already has bookings and cannot be deleted", results.CONFLICT
            )
        logger.info(f"🗑️ Deleted slot {slot_id} for creator {creator.id}")
        return OperationResult.ok()

    def set_availability(self, slot_id: int, is_available: bool, creator: Creator) -> OperationResult:
        slot = self.repo.get_slot(self.db, slot_id, creator.id)
        if not slot:
            return OperationResult.fail("Slot not found", results.NOT_FOUND)
        if slot.is_available == is_available:
            return OperationResult.ok(slot, changed=False)
        return OperationResult.ok(self.repo.set_availability(self.db, slot, is_available))

    def update_capacity(self, slot_id: int, max_bookings: int, creator: Creator) -> OperationResult:
        slot = self.repo.get_slot(self.db, slot_id, creator.id)
        if not slot:
            return OperationResult.fail("Slot not found", results.NOT_FOUND)
        if max_bookings < 1:
            return OperationResult.fail("Capacity must be at least 1")
        if not self.repo.update_max_bookings(self.db, slot_id, creator.id, max_bookings):
            return OperationResult.fail(
                "Capacity cannot be lower than the number of existing bookings", results.CONFLICT
            )
        self.db.refresh(slot)
        return OperationResult.ok(slot)


class AvailabilityService:
    """Buyer-facing view of which slots can be booked right now"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SlotRepository()

    def list_available(self, product_id: int, now: Optional[datetime] = None) -> OperationResult:
        product = ProductRepository.get_published_product(self.db, product_id)
        if not product or not is_bookable(product.type):
            return OperationResult.fail("Product not found", results.NOT_FOUND)

        now = now or now_local()
        rules = parse_product_config(product)
        slots = self.repo.list_product_slots(self.db, product.id, from_date=today_local(now))
        return OperationResult.ok(offerable_slots(slots, rules, now))
