"""
Expiry worker tests
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import update

from showtime_booking.models import Booking, BookingStatus
from showtime_booking.services import ExpiryScheduler, ExpiryWorker, PaymentNotification, ReconcileOutcome


@pytest.fixture
def worker(session_factory, reconciler):
    return ExpiryWorker(session_factory, reconciler, interval_seconds=0.05, batch_size=10)


@pytest.mark.asyncio
async def test_run_once_fires_only_due_timers(worker, reservation_service, show, fetch_booking, fetch_seats, fetch_timer):
    result = await reservation_service.reserve(show.id, "user-1", ["A1"])

    assert await worker.run_once(now=result.hold_expires_at - timedelta(seconds=1)) == 0
    assert (await fetch_booking(result.booking_id)).status == BookingStatus.PENDING

    assert await worker.run_once(now=result.hold_expires_at) == 1
    assert (await fetch_booking(result.booking_id)).status == BookingStatus.EXPIRED
    assert await fetch_seats(show.id) == {}

    timer = await fetch_timer(result.booking_id)
    assert timer.fired_at == result.hold_expires_at
    assert timer.attempts == 1

    # Fired timers are not picked up again
    assert await worker.run_once(now=result.hold_expires_at + timedelta(minutes=5)) == 0


@pytest.mark.asyncio
async def test_paid_booking_has_no_timer_to_fire(worker, reservation_service, reconciler, show, fetch_booking):
    result = await reservation_service.reserve(show.id, "user-1", ["A1"])
    outcome = await reconciler.handle_payment_succeeded(PaymentNotification(booking_id=result.booking_id))
    assert outcome == ReconcileOutcome.CONFIRMED

    assert await worker.run_once(now=result.hold_expires_at + timedelta(minutes=1)) == 0
    assert (await fetch_booking(result.booking_id)).status == BookingStatus.PAID


@pytest.mark.asyncio
async def test_run_once_processes_a_batch(session_factory, reconciler, reservation_service, show, fetch_booking):
    worker = ExpiryWorker(session_factory, reconciler, batch_size=2)
    results = [
        await reservation_service.reserve(show.id, f"user-{i}", [seat])
        for i, seat in enumerate(["A1", "A2", "A3"])
    ]
    later = results[-1].hold_expires_at

    assert await worker.run_once(now=later) == 2
    assert await worker.run_once(now=later) == 1

    for result in results:
        assert (await fetch_booking(result.booking_id)).status == BookingStatus.EXPIRED


@pytest.mark.asyncio
async def test_run_once_continues_after_a_failing_booking(session_factory, reconciler, reservation_service, show, fetch_booking, fetch_timer):
    first = await reservation_service.reserve(show.id, "user-1", ["A1"])
    second = await reservation_service.reserve(show.id, "user-2", ["A2"])

    handle_expiry = reconciler.handle_expiry

    async def flaky(booking_id, now=None):
        if booking_id == first.booking_id:
            raise RuntimeError("database went away")
        return await handle_expiry(booking_id, now=now)

    reconciler.handle_expiry = flaky
    worker = ExpiryWorker(session_factory, reconciler, retry_delay_seconds=30)

    assert await worker.run_once(now=second.hold_expires_at) == 1
    assert (await fetch_booking(first.booking_id)).status == BookingStatus.PENDING
    assert (await fetch_booking(second.booking_id)).status == BookingStatus.EXPIRED
    # The failed timer stays armed, pushed back behind newer timers
    timer = await fetch_timer(first.booking_id)
    assert timer.fired_at is None
    assert timer.attempts == 1
    assert timer.fire_at == second.hold_expires_at + timedelta(seconds=30)


@pytest.mark.asyncio
async def test_failing_timers_do_not_starve_newer_ones(session_factory, reconciler, reservation_service, show, fetch_booking, fetch_timer):
    stuck = await reservation_service.reserve(show.id, "user-1", ["A1"])
    fresh = await reservation_service.reserve(show.id, "user-2", ["A2"])
    later = fresh.hold_expires_at

    handle_expiry = reconciler.handle_expiry

    async def flaky(booking_id, now=None):
        if booking_id == stuck.booking_id:
            raise RuntimeError("database went away")
        return await handle_expiry(booking_id, now=now)

    reconciler.handle_expiry = flaky
    worker = ExpiryWorker(session_factory, reconciler, batch_size=1, retry_delay_seconds=60)

    # The oldest timer fails and moves to the back of the queue
    assert await worker.run_once(now=later) == 0
    assert await worker.run_once(now=later) == 1
    assert (await fetch_booking(fresh.booking_id)).status == BookingStatus.EXPIRED

    # Not due again until its retry delay has passed
    assert await worker.run_once(now=later) == 0
    assert (await fetch_timer(stuck.booking_id)).attempts == 1

    reconciler.handle_expiry = handle_expiry
    assert await worker.run_once(now=later + timedelta(seconds=60)) == 1
    assert (await fetch_booking(stuck.booking_id)).status == BookingStatus.EXPIRED


@pytest.mark.asyncio
async def test_start_and_stop(reservation_service, show, session_factory, reconciler, fetch_booking):
    """Test that the background loop expires overdue bookings"""
    result = await reservation_service.reserve(show.id, "user-1", ["B1"])
    overdue = ExpiryWorker(session_factory, reconciler, interval_seconds=0.05)

    # Pull the hold window into the past
    overdue_at = result.hold_expires_at - timedelta(hours=1)
    async with session_factory() as db:
        async with db.begin():
            await db.execute(update(Booking).where(Booking.id == result.booking_id).values(hold_expires_at=overdue_at))
            await ExpiryScheduler.cancel(db, result.booking_id)
            await ExpiryScheduler.schedule(db, result.booking_id, overdue_at)

    await overdue.start()
    assert overdue.running
    await overdue.start()  # second start is ignored

    for _ in range(50):
        if (await fetch_booking(result.booking_id)).status == BookingStatus.EXPIRED:
            break
        await asyncio.sleep(0.05)

    await overdue.stop()
    assert not overdue.running
    assert (await fetch_booking(result.booking_id)).status == BookingStatus.EXPIRED

    # Stopping twice is harmless
    await overdue.stop()
