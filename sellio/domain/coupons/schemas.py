"""Coupon domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: str) -> str:
    code = (code or "").strip().upper()
    if not code:
        raise ValueError("Coupon code is required")
    if len(code) > 50:
        raise ValueError("Coupon code must be 50 characters or fewer")
    return code


class CouponCreate(BaseModel):
    """Schema for creating a coupon"""

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    discountType: DiscountType
    discountValue: float = Field(gt=0)
    minPurchase: float = Field(default=0, ge=0)
    maxDiscount: Optional[float] = Field(default=None, gt=0)
    usageLimit: Optional[int] = Field(default=None, ge=1)
    perUserLimit: int = Field(default=1, ge=1)
    productIds: Optional[list[int]] = None
    productTypes: Optional[list[str]] = None
    startsAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return normalize_code(v)

    @model_validator(mode="after")
    def validate_percentage(self):
        if self.discountType == DiscountType.PERCENTAGE and self.discountValue > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.startsAt and self.expiresAt and self.expiresAt <= self.startsAt:
            raise ValueError("Expiry must be after the start date")
        return self


class CouponUpdate(BaseModel):
    """Schema for updating a coupon (only provided fields change)"""

    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    discountType: Optional[DiscountType] = None
    discountValue: Optional[float] = Field(default=None, gt=0)
    minPurchase: Optional[float] = Field(default=None, ge=0)
    maxDiscount: Optional[float] = Field(default=None, gt=0)
    usageLimit: Optional[int] = Field(default=None, ge=1)
    perUserLimit: Optional[int] = Field(default=None, ge=1)
    productIds: Optional[list[int]] = None
    productTypes: Optional[list[str]] = None
    startsAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    isActive: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        if v is None:
            return v
        return normalize_code(v)


class CouponValidateRequest(BaseModel):
    """Checkout-time coupon check"""

    code: str
    productId: int
    buyerEmail: str

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return normalize_code(v)


class CouponQuoteResponse(BaseModel):
    code: str
    discountType: str
    discountValue: float
    discountAmount: float
    finalAmount: float


class CouponResponse(BaseModel):
    id: int
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    discountType: str
    discountValue: float
    minPurchase: float
    maxDiscount: Optional[float] = None
    usageLimit: Optional[int] = None
    perUserLimit: int
    usageCount: int
    productIds: Optional[list[int]] = None
    productTypes: Optional[list[str]] = None
    startsAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    isActive: bool


def to_coupon_response(coupon) -> CouponResponse:
    return CouponResponse(
        id=coupon.id,
        code=coupon.code,
        name=coupon.name,
        description=coupon.description,
        discountType=coupon.discount_type,
        discountValue=coupon.discount_value,
        minPurchase=coupon.min_purchase or 0,
        maxDiscount=coupon.max_discount,
        usageLimit=coupon.usage_limit,
        perUserLimit=coupon.per_user_limit,
        usageCount=coupon.usage_count,
        productIds=coupon.product_ids,
        productTypes=coupon.product_types,
        startsAt=coupon.starts_at,
        expiresAt=coupon.expires_at,
        isActive=coupon.is_active,
    )


# Maps API field names to model columns for updates
COUPON_FIELD_MAP = {
    "code": "code",
    "name": "name",
    "description": "description",
    "discountType": "discount_type",
    "discountValue": "discount_value",
    "minPurchase": "min_purchase",
    "maxDiscount": "max_discount",
    "usageLimit": "usage_limit",
    "perUserLimit": "per_user_limit",
    "productIds": "product_ids",
    "productTypes": "product_types",
    "startsAt": "starts_at",
    "expiresAt": "expires_at",
    "isActive": "is_active",
}
