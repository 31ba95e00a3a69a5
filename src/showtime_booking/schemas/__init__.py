"""
Pydantic schemas for API request/response validation
"""
from showtime_booking.schemas.show import (
    ShowBase,
    ShowCreate,
    ShowResponse,
    ShowListResponse,
    OccupiedSeatsResponse,
)
from showtime_booking.schemas.booking import (
    ReservationCreate,
    ReservationResponse,
    BookingResponse,
    BookingListResponse,
    WebhookAck,
)
from showtime_booking.schemas.admin import (
    PaidBookingListResponse,
    DashboardResponse,
)

__all__ = [
    # Shows
    "ShowBase",
    "ShowCreate",
    "ShowResponse",
    "ShowListResponse",
    "OccupiedSeatsResponse",
    # Bookings
    "ReservationCreate",
    "ReservationResponse",
    "BookingResponse",
    "BookingListResponse",
    "WebhookAck",
    # Admin
    "PaidBookingListResponse",
    "DashboardResponse",
]
