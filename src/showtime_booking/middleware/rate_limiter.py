"""
Rate limiting using SlowAPI
Throttles reservation attempts per user before they reach the lock layer
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from showtime_booking.core.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting
    Uses user_id when the caller supplies one, otherwise the client IP
    """
    user_id = request.query_params.get('user_id')

    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_identifier,
    default_limits=["100/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)
