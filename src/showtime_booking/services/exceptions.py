"""
Exceptions raised by the booking services
"""
from typing import Iterable


class BookingServiceError(Exception):
    """Base exception for booking service errors"""
    pass


class InvalidRequestError(BookingServiceError):
    """Raised when a reservation request is malformed"""
    pass


class ShowNotFoundError(InvalidRequestError):
    """Raised when the show doesn't exist"""
    pass


class SeatsUnavailableError(BookingServiceError):
    """Raised when requested seats are held or booked by someone else"""

    def __init__(self, message: str, seats: Iterable[str] = ()):
        super().__init__(message)
        self.seats = sorted(seats)


class BookingNotFoundError(BookingServiceError):
    """Raised when booking doesn't exist"""
    pass


class PaymentGatewayError(BookingServiceError):
    """Raised when the payment provider fails or times out"""
    pass


class SignatureInvalidError(BookingServiceError):
    """Raised when a webhook payload fails signature verification"""
    pass
