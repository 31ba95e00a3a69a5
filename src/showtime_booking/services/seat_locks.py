"""
Advisory seat locks in Redis

The locks only spare the database from hopeless contention: a CONFLICT lets
the coordinator reject early, while UNAVAILABLE means "carry on, the Seat
Ledger will decide". Correctness never depends on Redis.
"""
from enum import Enum
from typing import Iterable, List, Optional

from showtime_booking.core.config import settings
from showtime_booking.core.metrics import seat_lock_results_total
from showtime_booking.core.redis import RedisClient
import logging

logger = logging.getLogger(__name__)

# Lua script for atomic owner-checked unlock
UNLOCK_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""


class LockOutcome(str, Enum):
    ACQUIRED = "ACQUIRED"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"


def seat_lock_key(show_id: int, seat_number: str) -> str:
    # Hash tag keeps all of a show's seat keys in one cluster slot
    return f"lock:{{show:{show_id}}}:seat:{seat_number}"


class SeatLockManager:
    """Per-seat SET NX EX locks with all-or-nothing acquisition"""

    def __init__(self, redis_client: RedisClient, ttl_seconds: Optional[int] = None):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds or settings.hold_window_seconds

    async def acquire_all(
        self,
        show_id: int,
        seat_numbers: Iterable[str],
        holder: str,
        ttl_seconds: Optional[int] = None
    ) -> LockOutcome:
        """
        Lock every seat or none.

        Keys are taken in sorted seat order so two overlapping requests
        contend on the same first key. On the first refusal everything
        acquired by this call is released again.
        """
        redis = self.redis_client.redis
        if redis is None:
            logger.warning(f"⚠️ Seat locks unavailable for show {show_id}: Redis not connected")
            return self._record(LockOutcome.UNAVAILABLE)

        ttl = ttl_seconds or self.ttl_seconds
        acquired: List[str] = []

        try:
            for seat_number in sorted(set(seat_numbers)):
                key = seat_lock_key(show_id, seat_number)
                if not await redis.set(key, holder, nx=True, ex=ttl):
                    logger.info(
                        f"🔒 Seat {seat_number} on show {show_id} is locked by another reservation",
                        extra={'show_id': show_id}
                    )
                    await self._unlock(acquired, holder)
                    return self._record(LockOutcome.CONFLICT)
                acquired.append(key)
        except Exception as e:
            logger.warning(
                f"⚠️ Seat locks unavailable for show {show_id}: {e}",
                extra={'show_id': show_id}
            )
            await self._unlock(acquired, holder)
            return self._record(LockOutcome.UNAVAILABLE)

        return self._record(LockOutcome.ACQUIRED)

    async def release_all(
        self,
        show_id: int,
        seat_numbers: Iterable[str],
        holder: Optional[str] = None
    ) -> None:
        """
        Release seat locks. Missing keys are fine.

        With a holder, keys that have since been taken by someone else
        are left alone.
        """
        keys = [seat_lock_key(show_id, seat_number) for seat_number in seat_numbers]
        if holder is None:
            await self.redis_client.delete(*keys)
            return
        await self._unlock(keys, holder)

    async def _unlock(self, keys: List[str], holder: str) -> None:
        redis = self.redis_client.redis
        if redis is None:
            return

        for key in keys:
            try:
                await redis.eval(UNLOCK_SCRIPT, 1, key, holder)
            except Exception as e:
                # The TTL cleans up whatever we fail to delete
                logger.warning(f"⚠️ Error releasing seat lock {key}: {e}")

    @staticmethod
    def _record(outcome: LockOutcome) -> LockOutcome:
        seat_lock_results_total.labels(outcome=outcome.value).inc()
        return outcome


class NullSeatLockManager:
    """Lock layer switched off: every acquisition reports UNAVAILABLE"""

    async def acquire_all(self, show_id, seat_numbers, holder, ttl_seconds=None) -> LockOutcome:
        seat_lock_results_total.labels(outcome=LockOutcome.UNAVAILABLE.value).inc()
        return LockOutcome.UNAVAILABLE

    async def release_all(self, show_id, seat_numbers, holder=None) -> None:
        return None
