"""Order status transitions.

Every status change goes through ``apply_transition``. It issues an UPDATE
guarded by the allowed source statuses, so two concurrent requests can
never both move the same order.
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Order

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderEvent(str, Enum):
    UPLOAD_SLIP = "upload_slip"
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"
    EXPIRE = "expire"
    REFUND = "refund"
    RESCHEDULE = "reschedule"


# event -> (allowed source statuses, target status)
TRANSITIONS = {
    OrderEvent.UPLOAD_SLIP: ({OrderStatus.PENDING_PAYMENT}, OrderStatus.PENDING_CONFIRMATION),
    OrderEvent.CONFIRM: (
        {OrderStatus.PENDING_PAYMENT, OrderStatus.PENDING_CONFIRMATION},
        OrderStatus.CONFIRMED,
    ),
    OrderEvent.REJECT: ({OrderStatus.PENDING_CONFIRMATION}, OrderStatus.CANCELLED),
    OrderEvent.CANCEL: (
        {OrderStatus.PENDING_CONFIRMATION, OrderStatus.CONFIRMED},
        OrderStatus.CANCELLED,
    ),
    OrderEvent.EXPIRE: ({OrderStatus.PENDING_PAYMENT}, OrderStatus.CANCELLED),
    OrderEvent.REFUND: (
        {OrderStatus.PENDING_CONFIRMATION, OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
        OrderStatus.REFUNDED,
    ),
    # Status does not change; only the slot does
    OrderEvent.RESCHEDULE: (
        {OrderStatus.PENDING_CONFIRMATION, OrderStatus.CONFIRMED},
        None,
    ),
}

TERMINAL_STATUSES = {OrderStatus.REFUNDED.value}
# Orders that hold (or will hold) a seat and count toward per-customer caps
ACTIVE_STATUSES = [
    OrderStatus.PENDING_PAYMENT.value,
    OrderStatus.PENDING_CONFIRMATION.value,
    OrderStatus.CONFIRMED.value,
]


def source_statuses(event: OrderEvent) -> list[str]:
    return sorted(s.value for s in TRANSITIONS[event][0])


def target_status(event: OrderEvent) -> Optional[str]:
    target = TRANSITIONS[event][1]
    return target.value if target else None


def can_apply(status: str, event: OrderEvent) -> bool:
    return status in source_statuses(event)


def apply_transition(
    db: Session,
    order_id: str,
    event: OrderEvent,
    extra_filters: Optional[list] = None,
    **changes,
) -> bool:
    """Move the order if it is still in an allowed status. Does not commit.

    ``changes`` are written in the same UPDATE (column name -> value or SQL
    expression). Returns False when the order was not in a source status,
    which usually means another request moved it first.
    """
    values = {getattr(Order, key): value for key, value in changes.items()}
    target = target_status(event)
    if target is not None:
        values[Order.status] = target

    query = db.query(Order).filter(Order.id == order_id, Order.status.in_(source_statuses(event)))
    for condition in extra_filters or []:
        query = query.filter(condition)
    updated = query.update(values, synchronize_session=False)

    if updated != 1:
        logger.info(f"Transition {event.value} not applied to order {order_id}")
    return updated == 1
