"""Product type configuration - one schema per product type.

``products.type_config`` is stored as JSON. It is always read through
``parse_product_config`` so every call site works with a concrete model
instead of probing optional keys.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ...config import DEFAULT_DURATION_MINUTES, DEFAULT_MAX_DOWNLOADS


class ProductType(str, Enum):
    DIGITAL = "digital"
    BOOKING = "booking"
    LIVE = "live"
    LINK = "link"


BOOKABLE_TYPES = {ProductType.BOOKING.value, ProductType.LIVE.value}


def is_bookable(product_type: str) -> bool:
    return product_type in BOOKABLE_TYPES


# ----------------------------------------------------------------------------
# Digital delivery
# ----------------------------------------------------------------------------


class FileDelivery(BaseModel):
    delivery_type: Literal["file"] = "file"
    file_url: str = ""
    file_name: str = "file"


class RedirectDelivery(BaseModel):
    delivery_type: Literal["redirect"] = "redirect"
    redirect_url: str = ""
    redirect_name: str = ""


DigitalDelivery = Annotated[Union[FileDelivery, RedirectDelivery], Field(discriminator="delivery_type")]


class DigitalConfig(BaseModel):
    type: Literal["digital"] = "digital"
    delivery: DigitalDelivery = Field(default_factory=FileDelivery)
    max_downloads: int = Field(default=DEFAULT_MAX_DOWNLOADS, ge=1)


# ----------------------------------------------------------------------------
# Booking / live
# ----------------------------------------------------------------------------


class OnlineLocation(BaseModel):
    meeting_type: Literal["online"] = "online"
    meeting_url: str = ""
    meeting_platform: str = ""


class OfflineLocation(BaseModel):
    meeting_type: Literal["offline"] = "offline"
    location_name: str = ""
    location_address: str = ""
    location_notes: str = ""


BookingLocation = Annotated[Union[OnlineLocation, OfflineLocation], Field(discriminator="meeting_type")]


class SchedulingRules(BaseModel):
    """Rules shared by every slot-based product"""

    duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, gt=0, le=24 * 60)
    minimum_advance_hours: int = Field(default=0, ge=0)
    buffer_minutes: int = Field(default=0, ge=0)
    max_bookings_per_customer: Optional[int] = Field(default=None, ge=1)


class BookingConfig(SchedulingRules):
    type: Literal["booking"] = "booking"
    location: BookingLocation = Field(default_factory=OnlineLocation)


class LiveConfig(SchedulingRules):
    type: Literal["live"] = "live"
    platform: str = ""
    access_url: str = ""
    access_code: str = ""


class LinkConfig(BaseModel):
    type: Literal["link"] = "link"
    url: str = ""


ProductConfig = Annotated[
    Union[DigitalConfig, BookingConfig, LiveConfig, LinkConfig], Field(discriminator="type")
]

_config_adapter = TypeAdapter(ProductConfig)


def _lift_flat_keys(product_type: str, raw: dict) -> dict:
    """Accept the flat dashboard layout (location_type, meeting_link, ...)"""
    if product_type == "booking" and "location" not in raw and "location_type" in raw:
        if raw.get("location_type") == "offline":
            raw["location"] = {
                "meeting_type": "offline",
                "location_name": raw.pop("location_name", "") or "",
                "location_address": raw.pop("location_address", "") or "",
                "location_notes": raw.pop("location_notes", "") or "",
            }
        else:
            raw["location"] = {
                "meeting_type": "online",
                "meeting_url": raw.pop("meeting_link", "") or "",
                "meeting_platform": raw.pop("meeting_platform", "") or "",
            }
        raw.pop("location_type", None)
    elif product_type == "digital" and "delivery" not in raw and "delivery_type" in raw:
        if raw.get("delivery_type") == "redirect":
            raw["delivery"] = {
                "delivery_type": "redirect",
                "redirect_url": raw.pop("redirect_url", "") or "",
                "redirect_name": raw.pop("redirect_name", "") or "",
            }
        else:
            raw["delivery"] = {
                "delivery_type": "file",
                "file_url": raw.pop("digital_file_url", "") or "",
                "file_name": raw.pop("digital_file_name", "") or "file",
            }
        raw.pop("delivery_type", None)
    return raw


def parse_product_config(product) -> Union[DigitalConfig, BookingConfig, LiveConfig, LinkConfig]:
    """Build the typed configuration for a product row"""
    raw = dict(product.type_config or {})
    raw = _lift_flat_keys(product.type, raw)
    raw["type"] = product.type
    # Unknown keys from older dashboards are ignored by the models
    return _config_adapter.validate_python(raw)
