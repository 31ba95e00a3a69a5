"""
API key check for operator endpoints (internal triggers, admin reports)
"""
import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from showtime_booking.core.config import settings
import logging

logger = logging.getLogger(__name__)


class AuthenticationError(HTTPException):
    """Raised when the operator key is missing or wrong"""

    def __init__(self, detail: str = "Invalid or missing API key"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "ApiKey"},
        )


async def verify_operator_key(x_api_key: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency validating the X-API-Key header against OPERATOR_API_KEY.

    With no key configured the operator endpoints are switched off (403).
    """
    if not settings.OPERATOR_API_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operator endpoints are disabled")

    if not x_api_key:
        logger.warning("⚠️ Operator request without API key")
        raise AuthenticationError("API key required")

    if not hmac.compare_digest(x_api_key.encode(), settings.OPERATOR_API_KEY.encode()):
        logger.warning("⚠️ Operator request with invalid API key")
        raise AuthenticationError("Invalid API key")

    return x_api_key
