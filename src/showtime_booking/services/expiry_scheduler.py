"""
Durable hold-expiry timers stored in the scheduled_expiries table
"""
from datetime import datetime, timedelta
from typing import List
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from showtime_booking.models import ScheduledExpiry


class ExpiryScheduler:
    """Persisted timers, written inside the caller's transaction"""

    @staticmethod
    async def schedule(db: AsyncSession, booking_id: int, fire_at: datetime) -> None:
        db.add(ScheduledExpiry(booking_id=booking_id, fire_at=fire_at))
        await db.flush()

    @staticmethod
    async def cancel(db: AsyncSession, booking_id: int) -> int:
        result = await db.execute(
            delete(ScheduledExpiry)
            .where(ScheduledExpiry.booking_id == booking_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def due(db: AsyncSession, now: datetime, limit: int) -> List[int]:
        """Booking ids whose timer is due and not yet fired, oldest first"""
        result = await db.execute(
            select(ScheduledExpiry.booking_id)
            .where(ScheduledExpiry.fired_at.is_(None), ScheduledExpiry.fire_at <= now)
            .order_by(ScheduledExpiry.fire_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def mark_fired(db: AsyncSession, booking_id: int, now: datetime) -> int:
        result = await db.execute(
            update(ScheduledExpiry)
            .where(ScheduledExpiry.booking_id == booking_id, ScheduledExpiry.fired_at.is_(None))
            .values(fired_at=now, attempts=ScheduledExpiry.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def record_failure(db: AsyncSession, booking_id: int, now: datetime, retry_delay: timedelta) -> int:
        """
        Count a failed fire and push the timer back behind newer ones.

        The delay grows with each attempt.
        """
        timer = await db.get(ScheduledExpiry, booking_id)
        if timer is None or timer.fired_at is not None:
            return 0

        attempts = timer.attempts + 1
        result = await db.execute(
            update(ScheduledExpiry)
            .where(
                ScheduledExpiry.booking_id == booking_id,
                ScheduledExpiry.fired_at.is_(None),
                ScheduledExpiry.attempts == timer.attempts,
            )
            .values(attempts=attempts, fire_at=now + retry_delay * attempts)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
