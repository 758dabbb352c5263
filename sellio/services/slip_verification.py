"""Slip2GO bank-transfer slip verification"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import SLIP2GO_API_URL, SLIP2GO_SECRET_KEY, SLIP2GO_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Slip2GO response code for "slip found"
SLIP_FOUND_CODE = "200000"


@dataclass
class SlipVerificationResult:
    """``success`` means the provider answered; ``verified`` means the slip matches"""

    success: bool
    verified: bool
    message: str
    amount: Optional[float] = None
    trans_ref: Optional[str] = None
    sender_name: Optional[str] = None
    receiver_name: Optional[str] = None


class SlipVerifier:
    """Client for the Slip2GO image-link verification API"""

    def __init__(
        self,
        api_url: str = SLIP2GO_API_URL,
        secret_key: str = SLIP2GO_SECRET_KEY,
        timeout: float = SLIP2GO_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    async def verify(
        self, image_url: str, expected_amount: Optional[float] = None, check_duplicate: bool = True
    ) -> SlipVerificationResult:
        """Check a slip image against the expected amount. Never raises."""
        if not self.enabled:
            logger.warning("⚠️ SLIP2GO_SECRET_KEY not configured, skipping verification")
            return SlipVerificationResult(False, False, "Slip verification not configured")

        check_condition = {}
        if check_duplicate:
            check_condition["checkDuplicate"] = True
        if expected_amount and expected_amount > 0:
            check_condition["checkAmount"] = {"type": "eq", "amount": str(expected_amount)}

        payload = {"imageUrl": image_url}
        if check_condition:
            payload["checkCondition"] = check_condition

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_url}/api/verify-slip/qr-image-link/info",
                    json={"payload": payload},
                    headers={
                        "Authorization": f"Bearer {self.secret_key}",
                        "Content-Type": "application/json",
                    },
                )
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Slip2GO verification error: {str(e)}")
            return SlipVerificationResult(False, False, "Slip verification service unavailable")

        logger.info(f"🔍 Slip2GO response: HTTP {response.status_code}, code {body.get('code')}")

        data = body.get("data")
        if body.get("code") != SLIP_FOUND_CODE or not data:
            return SlipVerificationResult(True, False, body.get("message") or "Slip verification failed")

        try:
            slip_amount = float(data.get("amount") or 0)
        except (TypeError, ValueError):
            slip_amount = 0.0

        amount_matches = True
        if expected_amount:
            amount_matches = round(slip_amount, 2) == round(float(expected_amount), 2)

        return SlipVerificationResult(
            success=True,
            verified=amount_matches,
            message=(
                "Slip verified successfully"
                if amount_matches
                else f"Amount mismatch: expected {expected_amount}, got {slip_amount}"
            ),
            amount=slip_amount,
            trans_ref=data.get("transRef"),
            sender_name=((data.get("sender") or {}).get("account") or {}).get("name"),
            receiver_name=((data.get("receiver") or {}).get("account") or {}).get("name"),
        )


def get_slip_verifier() -> SlipVerifier:
    """Dependency for routers; tests override it"""
    return SlipVerifier()
