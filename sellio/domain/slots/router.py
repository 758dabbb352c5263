"""Slot router - FastAPI endpoints for slot management and availability"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_creator
from ...database import get_db
from ...models import Creator
from ...shared import results
from ...shared.http import unwrap
from ...shared.results import OperationResult, http_status_for
from ..bookings.schemas import AvailableSlotsResponse
from .capacity import group_by_date
from .schemas import (
    BatchSlotCreate,
    RecurringSlotCreate,
    SlotAvailabilityUpdate,
    SlotCapacityUpdate,
    SlotCreate,
    SlotGenerationResponse,
    SlotResponse,
    to_public_slot,
    to_slot_response,
)
from .service import AvailabilityService, SlotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["Slots"])
public_router = APIRouter(prefix="/store", tags=["Storefront"])


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    """Dependency injection for SlotService"""
    return SlotService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def _generation_response(result: OperationResult):
    """Bulk outcome; a partial failure still reports what was saved"""
    if not result.success and result.code != results.PARTIAL_FAILURE:
        unwrap(result)
    outcome = result.data
    body = SlotGenerationResponse(
        requested=outcome.requested,
        created=outcome.inserted,
        skipped=outcome.skipped,
        completed=outcome.completed,
        error=outcome.error,
    )
    return JSONResponse(status_code=http_status_for(result), content=body.model_dump())


# ============================================================================
# CREATOR SLOT MANAGEMENT
# ============================================================================


@router.post("", response_model=SlotGenerationResponse)
async def create_slot(
    data: SlotCreate,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    """Create a single slot"""
    return _generation_response(service.create_slot(data, current_creator))


@router.post("/batch", response_model=SlotGenerationResponse)
async def create_batch_slots(
    data: BatchSlotCreate,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    """Split one day's time window into back-to-back slots"""
    return _generation_response(service.create_batch(data, current_creator))


@router.post("/recurring", response_model=SlotGenerationResponse)
async def create_recurring_slots(
    data: RecurringSlotCreate,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    """Create slots on selected weekdays for the coming weeks"""
    return _generation_response(service.create_recurring(data, current_creator))


@router.get("/product/{product_id}", response_model=list[SlotResponse])
async def list_product_slots(
    product_id: int,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    slots = unwrap(service.list_slots(product_id, current_creator))
    return [to_slot_response(s) for s in slots]


@router.patch("/{slot_id}/availability", response_model=SlotResponse)
async def update_slot_availability(
    slot_id: int,
    data: SlotAvailabilityUpdate,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    """Show or hide a slot from buyers"""
    return to_slot_response(unwrap(service.set_availability(slot_id, data.isAvailable, current_creator)))


@router.patch("/{slot_id}/capacity", response_model=SlotResponse)
async def update_slot_capacity(
    slot_id: int,
    data: SlotCapacityUpdate,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    return to_slot_response(unwrap(service.update_capacity(slot_id, data.maxBookings, current_creator)))


@router.delete("/{slot_id}")
async def delete_slot(
    slot_id: int,
    current_creator: Creator = Depends(get_current_creator),
    service: SlotService = Depends(get_slot_service),
):
    """Delete a slot that has no bookings"""
    unwrap(service.delete_slot(slot_id, current_creator))
    return {"message": "Slot deleted successfully"}


# ============================================================================
# PUBLIC AVAILABILITY
# ============================================================================


@public_router.get("/products/{product_id}/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    product_id: int,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable slots for a published product, grouped by date"""
    slots = unwrap(service.list_available(product_id))
    grouped = group_by_date(slots)
    return AvailableSlotsResponse(
        dates={day: [to_public_slot(s) for s in day_slots] for day, day_slots in grouped.items()},
        total=len(slots),
    )
