"""Booking router - buyer endpoints for managing a booked session"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import checkout_rate_limiter
from ...services import notification_service
from ...services.notification_service import format_booking_when, order_notice
from ...shared.http import unwrap
from ..orders.schemas import OrderResponse, to_order_response
from ..slots.capacity import group_by_date
from ..slots.schemas import to_public_slot
from .schemas import AvailableSlotsResponse, CancelRequest, RescheduleRequest
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.get("/{order_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_reschedule_slots(
    order_id: str,
    service: BookingService = Depends(get_booking_service),
):
    """Slots this booking can move to, grouped by date"""
    slots = unwrap(service.available_slots_for_reschedule(order_id))
    grouped = group_by_date(slots)
    return AvailableSlotsResponse(
        dates={day: [to_public_slot(s) for s in day_slots] for day, day_slots in grouped.items()},
        total=len(slots),
    )


@router.post("/{order_id}/reschedule", response_model=OrderResponse)
async def reschedule_booking(
    order_id: str,
    data: RescheduleRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(checkout_rate_limiter),
):
    """Move the booking to another slot (allowed once)"""
    moved = unwrap(service.reschedule_order(order_id, data.slotId))
    order = moved["order"]
    background_tasks.add_task(
        notification_service.notify_booking_rescheduled,
        order_notice(order),
        format_booking_when(*moved["previous"]),
    )
    return to_order_response(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_booking(
    order_id: str,
    data: CancelRequest,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
):
    """Buyer cancels their booking"""
    result = service.cancel_order(order_id, reason=data.reason)
    order = unwrap(result)
    if result.changed:
        background_tasks.add_task(
            notification_service.notify_booking_cancelled, order_notice(order), data.reason, True
        )
    return to_order_response(order)
