"""
Booking notifications over Redis pub/sub

Fire-and-forget: a failed publish is logged and never affects the
booking that triggered it.
"""
from typing import Any, Dict

from showtime_booking.core.config import settings
from showtime_booking.core.redis import RedisClient
import logging

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED = "booking.confirmed"
BOOKING_EXPIRED = "booking.expired"


class BookingNotifier:
    """Publishes booking lifecycle events for downstream consumers (email, seat maps)"""

    def __init__(self, redis_client: RedisClient, channel: str = None):
        self.redis_client = redis_client
        self.channel = channel or settings.NOTIFICATION_CHANNEL

    async def booking_confirmed(self, booking) -> bool:
        return await self._publish(BOOKING_CONFIRMED, booking)

    async def booking_expired(self, booking) -> bool:
        return await self._publish(BOOKING_EXPIRED, booking)

    async def _publish(self, event_type: str, booking) -> bool:
        message: Dict[str, Any] = {
            "type": event_type,
            "booking_id": booking.id,
            "user_id": booking.user_id,
            "show_id": booking.show_id,
            "seat_numbers": list(booking.seat_numbers),
        }
        published = await self.redis_client.publish(self.channel, message)
        if not published:
            logger.warning(
                f"⚠️ Could not publish {event_type} for booking {booking.id}",
                extra={'booking_id': booking.id}
            )
        return published
