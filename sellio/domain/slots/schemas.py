"""Slot domain schemas - Pydantic models for validation"""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field


class SlotCreate(BaseModel):
    """Schema for creating a single slot"""

    productId: int
    slotDate: date
    startTime: time
    endTime: Optional[time] = None  # defaults to start + product duration
    maxBookings: int = Field(default=1, ge=1)


class BatchSlotCreate(BaseModel):
    """Schema for tiling one day's time window into slots"""

    productId: int
    slotDate: date
    startTime: time
    endTime: time
    durationMinutes: Optional[int] = None  # defaults to the product duration
    maxBookings: int = Field(default=1, ge=1)


class RecurringSlotCreate(BaseModel):
    """Schema for weekly recurring slots (0 = Sunday ... 6 = Saturday)"""

    productId: int
    daysOfWeek: list[int]
    startTime: time
    endTime: time
    weeks: int
    durationMinutes: Optional[int] = None
    maxBookings: int = Field(default=1, ge=1)


class SlotAvailabilityUpdate(BaseModel):
    isAvailable: bool


class SlotCapacityUpdate(BaseModel):
    maxBookings: int = Field(ge=1)


class SlotResponse(BaseModel):
    """Schema for slot response"""

    id: int
    productId: int
    slotDate: date
    startTime: str
    endTime: str
    maxBookings: int
    currentBookings: int
    remaining: int
    isAvailable: bool
    isBooked: bool


class PublicSlotResponse(BaseModel):
    """Slot as shown to buyers (no booking counts)"""

    id: int
    slotDate: date
    startTime: str
    endTime: str
    remaining: int


class SlotGenerationResponse(BaseModel):
    requested: int
    created: int
    skipped: int
    completed: bool
    error: Optional[str] = None


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def to_slot_response(slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        productId=slot.product_id,
        slotDate=slot.slot_date,
        startTime=format_time(slot.start_time),
        endTime=format_time(slot.end_time),
        maxBookings=slot.max_bookings,
        currentBookings=slot.current_bookings,
        remaining=slot.remaining,
        isAvailable=slot.is_available,
        isBooked=slot.is_booked,
    )


def to_public_slot(slot) -> PublicSlotResponse:
    return PublicSlotResponse(
        id=slot.id,
        slotDate=slot.slot_date,
        startTime=format_time(slot.start_time),
        endTime=format_time(slot.end_time),
        remaining=slot.remaining,
    )
