"""Typed outcomes for business operations.

Expected business conditions (slot full, reschedule already used, coupon
exhausted, ...) are returned as an ``OperationResult`` instead of raised.
Routers translate the ``code`` into an HTTP status.
"""

from dataclasses import dataclass
from typing import Any, Optional

# Outcome codes
VALIDATION_ERROR = "validation_error"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
CAPACITY_EXCEEDED = "capacity_exceeded"
RESCHEDULE_LIMIT = "reschedule_limit"
INVALID_TRANSITION = "invalid_transition"
ADVANCE_NOTICE = "advance_notice"
BUFFER_CONFLICT = "buffer_conflict"
SLOT_UNAVAILABLE = "slot_unavailable"
COUPON_INVALID = "coupon_invalid"
COUPON_USAGE_LIMIT = "coupon_usage_limit"
COUPON_USER_LIMIT = "coupon_user_limit"
DOWNLOAD_LIMIT = "download_limit"
EXPIRED = "expired"
DEPENDENCY_FAILURE = "dependency_failure"
PARTIAL_FAILURE = "partial_failure"


@dataclass
class OperationResult:
    """Success flag plus either a payload or a human-readable reason"""

    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    # False when the call succeeded but the state was already as requested
    changed: bool = True

    @classmethod
    def ok(cls, data: Any = None, changed: bool = True) -> "OperationResult":
        return cls(success=True, data=data, changed=changed)

    @classmethod
    def fail(cls, error: str, code: str = VALIDATION_ERROR, data: Any = None) -> "OperationResult":
        return cls(success=False, data=data, error=error, code=code)

    def __bool__(self) -> bool:
        return self.success


HTTP_STATUS_BY_CODE = {
    VALIDATION_ERROR: 400,
    ADVANCE_NOTICE: 400,
    NOT_FOUND: 404,
    CONFLICT: 409,
    CAPACITY_EXCEEDED: 409,
    RESCHEDULE_LIMIT: 409,
    INVALID_TRANSITION: 409,
    BUFFER_CONFLICT: 409,
    SLOT_UNAVAILABLE: 409,
    COUPON_INVALID: 400,
    COUPON_USAGE_LIMIT: 409,
    COUPON_USER_LIMIT: 409,
    DOWNLOAD_LIMIT: 403,
    EXPIRED: 410,
    DEPENDENCY_FAILURE: 502,
    PARTIAL_FAILURE: 207,
}


def http_status_for(result: OperationResult) -> int:
    if result.success:
        return 200
    return HTTP_STATUS_BY_CODE.get(result.code or VALIDATION_ERROR, 400)
