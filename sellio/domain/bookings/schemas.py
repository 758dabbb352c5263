"""Booking domain schemas - cancel / reschedule requests"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...utils.sanitization import sanitize_optional_text
from ..slots.schemas import PublicSlotResponse


class CancelRequest(BaseModel):
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return sanitize_optional_text(v, max_length=500)


class RescheduleRequest(BaseModel):
    slotId: int


class AvailableSlotsResponse(BaseModel):
    """Slots grouped by ISO date"""

    dates: dict[str, list[PublicSlotResponse]]
    total: int
