"""Booking service - cancel and reschedule for slot-based orders.

Reschedule moves one seat between two slot rows. The order update, the
release of the old seat and the reservation of the new one share a single
transaction; if the new slot is full everything is rolled back and the order
still holds its original seat.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import MAX_RESCHEDULES
from ...models import Creator, Order
from ...shared import results
from ...shared.clock import now_local, today_local, utcnow
from ...shared.results import OperationResult
from ..orders.repository import OrderRepository
from ..orders.state_machine import OrderEvent, OrderStatus, apply_transition, can_apply
from ..products.schemas import is_bookable, parse_product_config
from ..slots.capacity import evaluate_slot, offerable_slots
from ..slots.repository import SlotRepository

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for cancelling and rescheduling bookings"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    def _load(self, order_id: str, creator: Optional[Creator] = None) -> Optional[Order]:
        if creator is not None:
            return self.repo.get_creator_order(self.db, order_id, creator.id)
        return self.repo.get_order(self.db, order_id)

    def cancel_order(
        self, order_id: str, reason: Optional[str] = None, creator: Optional[Creator] = None
    ) -> OperationResult:
        """Cancel a pending or confirmed order and free its seat.

        Cancelling an order that is already cancelled succeeds with
        ``changed=False``. Buyers (``creator is None``) may only cancel
        booking and live orders.
        """
        order = self._load(order_id, creator)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        if creator is None and not is_bookable(order.product.type):
            return OperationResult.fail("Only bookings can be cancelled here")
        if order.status == OrderStatus.CANCELLED.value:
            return OperationResult.ok(order, changed=False)
        if not can_apply(order.status, OrderEvent.CANCEL):
            return OperationResult.fail(
                "Only pending or confirmed orders can be cancelled", results.INVALID_TRANSITION
            )

        try:
            if not apply_transition(
                self.db,
                order.id,
                OrderEvent.CANCEL,
                cancel_reason=reason,
                cancelled_at=utcnow(),
            ):
                self.db.rollback()
                current = self.repo.get_order(self.db, order_id)
                if current and current.status == OrderStatus.CANCELLED.value:
                    return OperationResult.ok(current, changed=False)
                return OperationResult.fail(
                    "This order was changed by another request", results.INVALID_TRANSITION
                )
            released = self.repo.release_for_order(self.db, order)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"❌ Failed to cancel order {order.id} (slot {order.slot_id}, creator {order.creator_id}): {str(e)}"
            )
            raise

        actor = f"creator {creator.id}" if creator else "buyer"
        logger.info(f"🚫 Order {order.id} cancelled by {actor}, released slot {released}")
        return OperationResult.ok(self.repo.get_order(self.db, order.id))

    def _check_reschedulable(self, order: Optional[Order]) -> Optional[OperationResult]:
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        if not is_bookable(order.product.type) or not order.slot_id:
            return OperationResult.fail("This order has no booking to reschedule")
        if not can_apply(order.status, OrderEvent.RESCHEDULE):
            return OperationResult.fail(
                "Only pending or confirmed bookings can be rescheduled", results.INVALID_TRANSITION
            )
        if (order.reschedule_count or 0) >= MAX_RESCHEDULES:
            return OperationResult.fail(
                "This booking has already been rescheduled", results.RESCHEDULE_LIMIT
            )
        return None

    def available_slots_for_reschedule(
        self, order_id: str, now: Optional[datetime] = None
    ) -> OperationResult:
        """Slots the order could move to, excluding its current one"""
        order = self._load(order_id)
        error = self._check_reschedulable(order)
        if error is not None:
            return error

        now = now or now_local()
        rules = parse_product_config(order.product)
        slots = SlotRepository.list_product_slots(self.db, order.product_id, from_date=today_local(now))
        released = order.slot_id if order.slot_reserved else None
        return OperationResult.ok(
            offerable_slots(slots, rules, now, exclude_slot_id=order.slot_id, released_slot_id=released)
        )

    def reschedule_order(
        self, order_id: str, new_slot_id: int, now: Optional[datetime] = None
    ) -> OperationResult:
        """Move a booking to another slot of the same product (once per order)"""
        order = self._load(order_id)
        error = self._check_reschedulable(order)
        if error is not None:
            return error

        if new_slot_id == order.slot_id:
            return OperationResult.fail("Please choose a different time slot")

        target = SlotRepository.get_product_slot(self.db, new_slot_id, order.product_id)
        if not target:
            return OperationResult.fail("This time slot is not available", results.SLOT_UNAVAILABLE)

        now = now or now_local()
        rules = parse_product_config(order.product)
        same_day = SlotRepository.list_slots_on_date(self.db, order.product_id, target.slot_date)
        held = bool(order.slot_reserved)
        verdict = evaluate_slot(
            target, rules, same_day, now, released_slot_id=order.slot_id if held else None
        )
        if not verdict.allowed:
            return OperationResult.fail(verdict.reason, verdict.code)

        old_slot_id = order.slot_id
        old_date, old_time = order.booking_date, order.booking_time
        try:
            moved = apply_transition(
                self.db,
                order.id,
                OrderEvent.RESCHEDULE,
                extra_filters=[
                    Order.slot_id == old_slot_id,
                    Order.reschedule_count < MAX_RESCHEDULES,
                ],
                slot_id=target.id,
                booking_date=target.slot_date,
                booking_time=target.start_time,
                reschedule_count=Order.reschedule_count + 1,
            )
            if not moved:
                self.db.rollback()
                current = self.repo.get_order(self.db, order_id)
                if current and (current.reschedule_count or 0) >= MAX_RESCHEDULES:
                    return OperationResult.fail(
                        "This booking has already been rescheduled", results.RESCHEDULE_LIMIT
                    )
                return OperationResult.fail(
                    "This booking was changed by another request", results.INVALID_TRANSITION
                )

            if held:
                SlotRepository.release(self.db, old_slot_id)
                if not SlotRepository.reserve(self.db, target.id):
                    self.db.rollback()
                    logger.info(f"Reschedule of order {order.id} lost slot {target.id} to another buyer")
                    return OperationResult.fail(
                        "This time slot was just booked by someone else", results.CAPACITY_EXCEEDED
                    )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"❌ Failed to reschedule order {order.id} from slot {old_slot_id} to {target.id} "
                f"(creator {order.creator_id}): {str(e)}"
            )
            raise

        logger.info(f"🔁 Order {order.id} rescheduled from slot {old_slot_id} to {target.id}")
        return OperationResult.ok(
            {"order": self.repo.get_order(self.db, order.id), "previous": (old_date, old_time)}
        )
