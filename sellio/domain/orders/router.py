"""Order router - checkout, slip upload and creator order management"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_creator
from ...database import get_db
from ...models import Creator
from ...rate_limiter import checkout_rate_limiter, slip_upload_rate_limiter
from ...services import notification_service
from ...services.calendar_service import build_booking_event
from ...services.notification_service import order_notice
from ...services.slip_verification import SlipVerifier, get_slip_verifier
from ...services.storage_service import SlipStorage, get_slip_storage
from ...shared import results
from ...shared.http import unwrap
from ...shared.results import OperationResult
from ...utils.sanitization import sanitize_optional_text
from ..bookings.schemas import CancelRequest
from ..bookings.service import BookingService
from ..products.schemas import is_bookable, parse_product_config
from .payment_service import PaymentService
from .schemas import (
    CalendarBookingResponse,
    CheckoutCreate,
    OrderResponse,
    OrderStatsResponse,
    PaymentRejectRequest,
    to_calendar_booking,
    to_order_response,
    to_stats_response,
)
from .service import OrderService
from .state_machine import OrderStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])
creator_router = APIRouter(prefix="/dashboard/orders", tags=["Order Management"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


def get_payment_service(
    db: Session = Depends(get_db),
    storage: SlipStorage = Depends(get_slip_storage),
    verifier: SlipVerifier = Depends(get_slip_verifier),
) -> PaymentService:
    return PaymentService(db, storage, verifier)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


# ============================================================================
# BUYER
# ============================================================================


@router.post("", response_model=OrderResponse)
async def create_order(
    data: CheckoutCreate,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    _: None = Depends(checkout_rate_limiter),
):
    """Place an order; booking products reserve the chosen slot immediately"""
    order = unwrap(service.create_order(data))
    background_tasks.add_task(notification_service.notify_new_order, order_notice(order))
    return to_order_response(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    """Order summary for the buyer (the order id is the access key)"""
    return to_order_response(unwrap(service.get_order(order_id)))


@router.post("/{order_id}/slip", response_model=OrderResponse)
async def upload_payment_slip(
    order_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(slip_upload_rate_limiter),
):
    """Upload a transfer slip; a verified slip confirms the order right away"""
    order = unwrap(await service.upload_slip(order_id, file))
    notice = order_notice(order)
    if order.status == OrderStatus.CONFIRMED.value:
        background_tasks.add_task(notification_service.notify_payment_confirmed, notice)
    else:
        background_tasks.add_task(notification_service.notify_slip_uploaded, notice)
    return to_order_response(order)


@router.get("/{order_id}/calendar.ics")
async def download_calendar_event(order_id: str, service: OrderService = Depends(get_order_service)):
    """Add-to-calendar file for a confirmed booking"""
    order = unwrap(service.get_order(order_id))
    if (
        order.status != OrderStatus.CONFIRMED.value
        or not is_bookable(order.product.type)
        or not order.booking_date
    ):
        unwrap(OperationResult.fail("Calendar event not available for this order", results.NOT_FOUND))

    config = parse_product_config(order.product)
    content = (order.fulfillment.content if order.fulfillment else None) or {}
    location = content.get("meeting_url") or content.get("location") or content.get("access_url")
    ics = build_booking_event(
        order_id=order.id,
        title=order.product.title,
        booking_date=order.booking_date,
        booking_time=order.booking_time,
        duration_minutes=config.duration_minutes,
        description=content.get("notes") or None,
        location=location or None,
    )
    return Response(
        content=ics,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="booking-{order.id}.ics"'},
    )


# ============================================================================
# CREATOR
# ============================================================================


@creator_router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: Optional[str] = Query(None),
    product_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    orders = service.list_orders(current_creator, status, product_id, limit, offset)
    return [to_order_response(o) for o in orders]


@creator_router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    """Per-status counts and confirmed revenue"""
    counts, revenue = service.get_stats(current_creator)
    return to_stats_response(counts, revenue)


@creator_router.get("/calendar", response_model=list[CalendarBookingResponse])
async def list_calendar_bookings(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    """Pending and confirmed sessions ordered by date and start time"""
    orders = unwrap(service.list_calendar_bookings(current_creator, start_date, end_date))
    return [to_calendar_booking(o) for o in orders]


@creator_router.get("/calendar/{booking_date}", response_model=list[CalendarBookingResponse])
async def list_bookings_on_date(
    booking_date: date,
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    orders = unwrap(service.list_calendar_bookings(current_creator, booking_date, booking_date))
    return [to_calendar_booking(o) for o in orders]


@creator_router.get("/{order_id}", response_model=OrderResponse)
async def get_creator_order(
    order_id: str,
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    return to_order_response(unwrap(service.get_creator_order(order_id, current_creator)))


@creator_router.post("/{order_id}/confirm", response_model=OrderResponse)
async def confirm_payment(
    order_id: str,
    background_tasks: BackgroundTasks,
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    """Manually confirm a payment after checking the slip"""
    result = service.confirm_order(order_id, creator=current_creator)
    order = unwrap(result)
    if result.changed:
        background_tasks.add_task(notification_service.notify_payment_confirmed, order_notice(order))
    return to_order_response(order)


@creator_router.post("/{order_id}/reject", response_model=OrderResponse)
async def reject_payment(
    order_id: str,
    data: PaymentRejectRequest,
    background_tasks: BackgroundTasks,
    current_creator: Creator = Depends(get_current_creator),
    service: OrderService = Depends(get_order_service),
):
    """Reject the slip; the order is cancelled and the slot freed"""
    order = unwrap(service.reject_payment(order_id, current_creator, data.reason))
    background_tasks.add_task(notification_service.notify_payment_rejected, order_notice(order), data.reason)
    return to_order_response(order)


@creator_router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    note: Optional[str] = Form(None),
    current_creator: Creator = Depends(get_current_creator),
    service: PaymentService = Depends(get_payment_service),
):
    """Upload the refund transfer slip and mark the order refunded"""
    try:
        note = sanitize_optional_text(note, max_length=500)
    except ValueError as e:
        unwrap(OperationResult.fail(str(e)))
    result = await service.submit_refund(order_id, current_creator, file, note)
    order = unwrap(result)
    if result.changed:
        background_tasks.add_task(
            notification_service.notify_refund,
            order_notice(order),
            note,
            order.payment.refund_slip_url if order.payment else None,
        )
    return to_order_response(order)


@creator_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    data: CancelRequest,
    background_tasks: BackgroundTasks,
    current_creator: Creator = Depends(get_current_creator),
    service: BookingService = Depends(get_booking_service),
):
    """Creator cancels an order; the buyer is notified"""
    result = service.cancel_order(order_id, reason=data.reason, creator=current_creator)
    order = unwrap(result)
    if result.changed:
        background_tasks.add_task(
            notification_service.notify_booking_cancelled, order_notice(order), data.reason, False
        )
    return to_order_response(order)
