"""Coupon router - FastAPI endpoints for coupon operations"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_creator
from ...database import get_db
from ...models import Creator
from ...rate_limiter import checkout_rate_limiter
from ...shared.http import unwrap
from .schemas import (
    CouponCreate,
    CouponQuoteResponse,
    CouponResponse,
    CouponUpdate,
    CouponValidateRequest,
    to_coupon_response,
)
from .service import CouponService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["Coupons"])


def get_coupon_service(db: Session = Depends(get_db)) -> CouponService:
    """Dependency injection for CouponService"""
    return CouponService(db)


@router.get("", response_model=list[CouponResponse])
async def list_coupons(
    current_creator: Creator = Depends(get_current_creator),
    service: CouponService = Depends(get_coupon_service),
):
    return [to_coupon_response(c) for c in service.list_coupons(current_creator)]


@router.post("", response_model=CouponResponse)
async def create_coupon(
    data: CouponCreate,
    current_creator: Creator = Depends(get_current_creator),
    service: CouponService = Depends(get_coupon_service),
):
    return to_coupon_response(unwrap(service.create_coupon(data, current_creator)))


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: int,
    data: CouponUpdate,
    current_creator: Creator = Depends(get_current_creator),
    service: CouponService = Depends(get_coupon_service),
):
    return to_coupon_response(unwrap(service.update_coupon(coupon_id, data, current_creator)))


@router.post("/{coupon_id}/toggle", response_model=CouponResponse)
async def toggle_coupon(
    coupon_id: int,
    current_creator: Creator = Depends(get_current_creator),
    service: CouponService = Depends(get_coupon_service),
):
    """Activate or deactivate a coupon"""
    return to_coupon_response(unwrap(service.toggle_coupon(coupon_id, current_creator)))


@router.delete("/{coupon_id}")
async def delete_coupon(
    coupon_id: int,
    current_creator: Creator = Depends(get_current_creator),
    service: CouponService = Depends(get_coupon_service),
):
    """Delete an unused coupon; used coupons are deactivated"""
    result = service.delete_coupon(coupon_id, current_creator)
    unwrap(result)
    if not result.changed:
        return {"message": "Coupon has been used and was deactivated instead"}
    return {"message": "Coupon deleted successfully"}


@router.post("/validate", response_model=CouponQuoteResponse)
async def validate_coupon(
    data: CouponValidateRequest,
    service: CouponService = Depends(get_coupon_service),
    _: None = Depends(checkout_rate_limiter),
):
    """Public: check a coupon code at checkout"""
    quote = unwrap(service.validate_for_checkout(data.productId, data.code, data.buyerEmail))
    return CouponQuoteResponse(
        code=quote.coupon.code,
        discountType=quote.coupon.discount_type,
        discountValue=quote.coupon.discount_value,
        discountAmount=quote.discount_amount,
        finalAmount=quote.final_amount,
    )
