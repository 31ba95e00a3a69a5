"""
SQLAlchemy Models for the Showtime Booking Service

Import all models here for easy access and to ensure proper relationship setup.
"""
from showtime_booking.core.database import Base

# Import all models to register them with SQLAlchemy
from showtime_booking.models.show import Show, parse_seat_number, SEAT_NUMBER_PATTERN, MAX_ROWS
from showtime_booking.models.seat import Seat, SeatStatus
from showtime_booking.models.booking import Booking, BookingStatus
from showtime_booking.models.scheduled_expiry import ScheduledExpiry

# Export all models
__all__ = [
    "Base",
    "Show",
    "parse_seat_number",
    "SEAT_NUMBER_PATTERN",
    "MAX_ROWS",
    "Seat",
    "SeatStatus",
    "Booking",
    "BookingStatus",
    "ScheduledExpiry",
]
