"""Translate OperationResult into FastAPI responses"""

from fastapi import HTTPException

from .results import OperationResult, http_status_for


def unwrap(result: OperationResult):
    """Return the payload or raise an HTTPException carrying the reason"""
    if result.success:
        return result.data
    raise HTTPException(
        status_code=http_status_for(result),
        detail={"message": result.error, "code": result.code},
    )
