"""Fulfillment router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_creator
from ...database import get_db
from ...models import Creator, Fulfillment
from ...shared.http import unwrap
from .schemas import AccessResponse, FulfillmentResponse, FulfillmentUpdate
from .service import FulfillmentService, buyer_view

router = APIRouter(prefix="/fulfillments", tags=["Fulfillments"])


def get_fulfillment_service(db: Session = Depends(get_db)) -> FulfillmentService:
    return FulfillmentService(db)


def to_fulfillment_response(fulfillment: Fulfillment, content: dict) -> FulfillmentResponse:
    return FulfillmentResponse(
        order_id=fulfillment.order_id,
        type=fulfillment.type,
        content=content,
        access_token=fulfillment.access_token,
        download_count=fulfillment.download_count or 0,
        max_downloads=fulfillment.max_downloads or 0,
        access_until=fulfillment.access_until,
        is_accessed=bool(fulfillment.is_accessed),
    )


@router.patch("/order/{order_id}", response_model=FulfillmentResponse)
async def update_fulfillment(
    order_id: str,
    data: FulfillmentUpdate,
    current_creator: Creator = Depends(get_current_creator),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    """Creator fills in meeting link, location or live access details"""
    fulfillment = unwrap(service.update_details(order_id, current_creator, data))
    return to_fulfillment_response(fulfillment, dict(fulfillment.content or {}))


@router.get("/order/{order_id}", response_model=FulfillmentResponse)
async def get_order_fulfillment(
    order_id: str, service: FulfillmentService = Depends(get_fulfillment_service)
):
    fulfillment = unwrap(service.get_for_buyer(order_id))
    return to_fulfillment_response(fulfillment, buyer_view(fulfillment))


@router.get("/access/{access_token}", response_model=AccessResponse)
async def access_fulfillment(
    access_token: str, service: FulfillmentService = Depends(get_fulfillment_service)
):
    """Resolve a download link; each file download counts toward the limit"""
    return AccessResponse(**unwrap(service.access(access_token)))
