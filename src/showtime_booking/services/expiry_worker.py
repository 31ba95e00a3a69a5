"""
Background worker that fires due hold-expiry timers
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showtime_booking.core.clock import utcnow
from showtime_booking.core.config import settings
from showtime_booking.core.metrics import expiry_sweep_duration_seconds, expiry_worker_fired_total, track_time
from showtime_booking.services.expiry_scheduler import ExpiryScheduler
from showtime_booking.services.reconciler import BookingReconciler
import logging

logger = logging.getLogger(__name__)


class ExpiryWorker:
    """Polls scheduled_expiries and hands each due booking to the reconciler"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reconciler: BookingReconciler,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds or settings.EXPIRY_POLL_INTERVAL_SECONDS
        self.batch_size = batch_size or settings.EXPIRY_BATCH_SIZE
        self.retry_delay = timedelta(seconds=retry_delay_seconds or settings.EXPIRY_RETRY_DELAY_SECONDS)
        self.running = False
        self.task = None

    async def start(self):
        """Start the background worker"""
        if self.running:
            logger.warning("⚠️  Expiry worker already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info(f"✅ Expiry worker started (interval: {self.interval_seconds}s)")

    async def stop(self):
        """Stop the background worker"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("🛑 Expiry worker stopped")

    async def _run(self):
        """Main worker loop"""
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"❌ Error in expiry worker: {e}")
            await asyncio.sleep(self.interval_seconds)

    @track_time(expiry_sweep_duration_seconds)
    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Fire every timer due at `now`. Returns how many were processed.

        Timers that fail stay unfired. Their attempt count goes up and they
        are retried after a growing delay, behind timers that are due now.
        """
        now = now or utcnow()
        async with self.session_factory() as db:
            booking_ids = await ExpiryScheduler.due(db, now, self.batch_size)

        if not booking_ids:
            return 0

        logger.info(f"⏰ Firing {len(booking_ids)} expiry timers...")

        processed = 0
        for booking_id in booking_ids:
            try:
                await self.reconciler.handle_expiry(booking_id, now=now)
            except Exception as e:
                logger.error(
                    f"❌ Error expiring booking {booking_id}: {e}",
                    extra={'booking_id': booking_id}
                )
                await self._record_failure(booking_id, now)
                continue
            processed += 1
            expiry_worker_fired_total.inc()

        return processed

    async def _record_failure(self, booking_id: int, now: datetime) -> None:
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    await ExpiryScheduler.record_failure(db, booking_id, now, self.retry_delay)
        except Exception as e:
            logger.error(
                f"❌ Could not reschedule expiry for booking {booking_id}: {e}",
                extra={'booking_id': booking_id}
            )
