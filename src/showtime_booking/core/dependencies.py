"""
FastAPI Dependencies

Each getter builds its service once from the global database, Redis and
settings objects. Tests swap them out with `app.dependency_overrides`.
"""
from functools import lru_cache

from showtime_booking.core.config import settings
from showtime_booking.core.database import AsyncSessionLocal
from showtime_booking.core.redis import redis_client
from showtime_booking.services.expiry_worker import ExpiryWorker
from showtime_booking.services.notifications import BookingNotifier
from showtime_booking.services.payment_gateway import PaymentGateway, build_payment_gateway
from showtime_booking.services.reconciler import BookingReconciler
from showtime_booking.services.reservation_service import ReservationService
from showtime_booking.services.seat_locks import NullSeatLockManager, SeatLockManager


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Get the configured payment provider"""
    return build_payment_gateway()


@lru_cache
def get_seat_locks():
    """Get the advisory lock layer (a null variant when disabled)"""
    if not settings.SEAT_LOCKS_ENABLED:
        return NullSeatLockManager()
    return SeatLockManager(redis_client)


@lru_cache
def get_notifier() -> BookingNotifier:
    return BookingNotifier(redis_client)


@lru_cache
def get_reservation_service() -> ReservationService:
    return ReservationService(AsyncSessionLocal, get_seat_locks(), get_payment_gateway())


@lru_cache
def get_reconciler() -> BookingReconciler:
    return BookingReconciler(AsyncSessionLocal, get_seat_locks(), get_payment_gateway(), get_notifier())


@lru_cache
def get_expiry_worker() -> ExpiryWorker:
    return ExpiryWorker(AsyncSessionLocal, get_reconciler())
