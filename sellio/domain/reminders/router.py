"""Scheduled job endpoints, called by an external cron with the shared secret"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ... import config
from ...database import get_db
from ..orders.service import OrderService
from .service import ReminderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


class ReminderRunResponse(BaseModel):
    due: int
    sent: int
    failed: int


class ExpireRunResponse(BaseModel):
    expired: int


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    x_cron_secret: Optional[str] = Header(None),
) -> None:
    """Accept ``Authorization: Bearer <secret>`` or ``X-Cron-Secret: <secret>``"""
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET is not configured, refusing cron request")
        raise HTTPException(status_code=503, detail="Cron jobs are not configured")

    provided = x_cron_secret
    if authorization and authorization.startswith("Bearer "):
        provided = authorization[len("Bearer ") :]
    if not provided or not secrets.compare_digest(provided, config.CRON_SECRET):
        logger.warning("⚠️ Cron request with invalid secret")
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post("/booking-reminders", response_model=ReminderRunResponse)
async def send_booking_reminders(
    _: None = Depends(verify_cron_secret), db: Session = Depends(get_db)
):
    """Email buyers whose session starts in 12 to 36 hours"""
    return ReminderRunResponse(**await ReminderService(db).send_due_reminders())


@router.post("/expire-orders", response_model=ExpireRunResponse)
async def expire_unpaid_orders(
    _: None = Depends(verify_cron_secret), db: Session = Depends(get_db)
):
    """Cancel unpaid orders past their payment window and free their slots"""
    expired = OrderService(db).expire_overdue()
    if expired:
        logger.info(f"⌛ Expired {expired} unpaid orders")
    return ExpireRunResponse(expired=expired)
