"""
Services package exports
"""
from showtime_booking.services.exceptions import (
    BookingServiceError,
    InvalidRequestError,
    ShowNotFoundError,
    SeatsUnavailableError,
    BookingNotFoundError,
    PaymentGatewayError,
    SignatureInvalidError,
)
from showtime_booking.services.seat_ledger import SeatLedger, ClaimResult
from showtime_booking.services.seat_locks import SeatLockManager, NullSeatLockManager, LockOutcome
from showtime_booking.services.payment_gateway import (
    PaymentGateway,
    PaymentSession,
    StripePaymentGateway,
    SimulatedPaymentGateway,
    build_payment_gateway,
)
from showtime_booking.services.notifications import BookingNotifier
from showtime_booking.services.expiry_scheduler import ExpiryScheduler
from showtime_booking.services.reconciler import BookingReconciler, PaymentNotification, ReconcileOutcome
from showtime_booking.services.reservation_service import ReservationService, ReservationResult
from showtime_booking.services.show_service import ShowService
from showtime_booking.services.expiry_worker import ExpiryWorker

__all__ = [
    "BookingServiceError",
    "InvalidRequestError",
    "ShowNotFoundError",
    "SeatsUnavailableError",
    "BookingNotFoundError",
    "PaymentGatewayError",
    "SignatureInvalidError",
    "SeatLedger",
    "ClaimResult",
    "SeatLockManager",
    "NullSeatLockManager",
    "LockOutcome",
    "PaymentGateway",
    "PaymentSession",
    "StripePaymentGateway",
    "SimulatedPaymentGateway",
    "build_payment_gateway",
    "BookingNotifier",
    "ExpiryScheduler",
    "BookingReconciler",
    "PaymentNotification",
    "ReconcileOutcome",
    "ReservationService",
    "ReservationResult",
    "ShowService",
    "ExpiryWorker",
]
