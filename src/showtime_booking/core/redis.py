"""
Redis client wrapper

Redis only backs advisory seat locks and notification fan-out, so every
method degrades to a falsy result instead of raising when Redis is down.
"""
import redis.asyncio as redis
from showtime_booking.core.config import settings
import json
from typing import Optional, Any
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class EnumEncoder(json.JSONEncoder):
    """JSON encoder that handles Enums properly"""
    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class RedisClient:
    """Async Redis client wrapper"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis: Optional[redis.Redis] = client

    @property
    def available(self) -> bool:
        return self.redis is not None

    async def connect(self, url: str = None):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                url or settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
            # Test connection
            await self.redis.ping()
            logger.info("✅ Redis connected successfully")
        except Exception as e:
            logger.warning(f"⚠️ Redis connection failed, seat locks disabled: {e}")
            self.redis = None

    async def close(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("🔴 Redis connection closed")

    async def ping(self) -> bool:
        if not self.redis:
            return False

        try:
            return bool(await self.redis.ping())
        except Exception:
            return False

    async def delete(self, *keys: str) -> bool:
        """Delete one or more keys"""
        if not self.redis or not keys:
            return False

        try:
            await self.redis.delete(*keys)
            return True
        except Exception as e:
            logger.error(f"Redis DELETE error: {e}")
            return False

    async def publish(self, channel: str, message: Any) -> bool:
        """Publish a JSON message to a channel"""
        if not self.redis:
            return False

        try:
            await self.redis.publish(channel, json.dumps(message, cls=EnumEncoder, default=str))
            return True
        except Exception as e:
            logger.warning(f"Redis PUBLISH error on {channel}: {e}")
            return False


# Global Redis client instance
redis_client = RedisClient()
