"""Fulfillment domain schemas"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from ..products.schemas import (
    BookingConfig,
    DigitalConfig,
    FileDelivery,
    LinkConfig,
    LiveConfig,
    OfflineLocation,
    OnlineLocation,
)

PROTECTED_URL_MARKER = "***protected***"


class FulfillmentType(str, Enum):
    DOWNLOAD = "download"
    BOOKING_DETAILS = "booking_details"
    LIVE_ACCESS = "live_access"


def initial_content(config) -> Optional[tuple[str, dict]]:
    """Fulfillment type and starting content derived from the product config.

    Booking/live content is pre-filled from the product so the creator only
    has to adjust it before confirming. Links have nothing to fulfil.
    """
    if isinstance(config, BookingConfig):
        location = config.location
        if isinstance(location, OnlineLocation):
            content = {
                "meeting_type": "online",
                "meeting_url": location.meeting_url,
                "meeting_platform": location.meeting_platform,
                "location": "",
                "location_name": "",
                "location_notes": "",
                "notes": "",
            }
        elif isinstance(location, OfflineLocation):
            content = {
                "meeting_type": "offline",
                "meeting_url": "",
                "meeting_platform": "",
                "location": location.location_address,
                "location_name": location.location_name,
                "location_notes": location.location_notes,
                "notes": "",
            }
        else:
            raise TypeError(f"Unsupported booking location: {type(location).__name__}")
        return FulfillmentType.BOOKING_DETAILS.value, content
    if isinstance(config, LiveConfig):
        return FulfillmentType.LIVE_ACCESS.value, {
            "platform": config.platform,
            "access_url": config.access_url,
            "access_code": config.access_code,
            "notes": "",
        }
    if isinstance(config, DigitalConfig):
        delivery = config.delivery
        if isinstance(delivery, FileDelivery):
            content = {
                "delivery_type": "file",
                "file_url": delivery.file_url,
                "file_name": delivery.file_name or "file",
            }
        else:
            content = {
                "delivery_type": "redirect",
                "redirect_url": delivery.redirect_url,
                "redirect_name": delivery.redirect_name,
            }
        return FulfillmentType.DOWNLOAD.value, content
    if isinstance(config, LinkConfig):
        return None
    raise TypeError(f"Unsupported product config: {type(config).__name__}")


def has_required_details(fulfillment_type: str, content: Optional[dict]) -> bool:
    """Whether the buyer can act on the content (meeting link, address, access URL)"""
    content = content or {}
    if fulfillment_type == FulfillmentType.BOOKING_DETAILS.value:
        if (content.get("meeting_type") or "online") == "online":
            return bool((content.get("meeting_url") or "").strip())
        return bool((content.get("location") or "").strip())
    if fulfillment_type == FulfillmentType.LIVE_ACCESS.value:
        return bool((content.get("access_url") or "").strip())
    if fulfillment_type == FulfillmentType.DOWNLOAD.value:
        if content.get("delivery_type") == "redirect":
            return bool((content.get("redirect_url") or "").strip())
        return bool((content.get("file_url") or "").strip())
    return False


class FulfillmentUpdate(BaseModel):
    """Partial content update from the creator dashboard (merged into content)"""

    meeting_type: Optional[str] = None
    meeting_url: Optional[str] = None
    meeting_platform: Optional[str] = None
    location: Optional[str] = None
    location_name: Optional[str] = None
    location_notes: Optional[str] = None
    platform: Optional[str] = None
    access_url: Optional[str] = None
    access_code: Optional[str] = None
    notes: Optional[str] = None


class FulfillmentResponse(BaseModel):
    order_id: str
    type: str
    content: dict[str, Any]
    access_token: Optional[str] = None
    download_count: int = 0
    max_downloads: int = 0
    access_until: Optional[datetime] = None
    is_accessed: bool = False

    class Config:
        from_attributes = True


class AccessResponse(BaseModel):
    url: str
    name: Optional[str] = None
    download_count: Optional[int] = None
    max_downloads: Optional[int] = None
