"""Reservations and bookings API endpoints"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
import logging

from showtime_booking.core.dependencies import get_reservation_service
from showtime_booking.models.booking import BookingStatus
from showtime_booking.schemas import (
    ReservationCreate,
    ReservationResponse,
    BookingResponse,
    BookingListResponse,
)
from showtime_booking.services import (
    ReservationService,
    InvalidRequestError,
    ShowNotFoundError,
    SeatsUnavailableError,
    BookingNotFoundError,
    PaymentGatewayError,
)
from showtime_booking.core.config import settings
from showtime_booking.middleware.rate_limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

PAYMENT_RETRY_AFTER_SECONDS = 5


async def get_current_user_id(
    user_id: str = Query(..., min_length=1, max_length=255, description="User ID from the auth layer")
) -> str:
    return user_id


@router.post("/shows/{show_id}/reservations", response_model=ReservationResponse, status_code=201)
@limiter.limit(settings.RESERVATION_RATE_LIMIT)
async def create_reservation(
    request: Request,
    show_id: int,
    reservation: ReservationCreate,
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Reserve seats and open a checkout session

    The seats are held for the hold window. Pay at `payment_url` before
    `hold_expires_at` or the booking expires and the seats are released.

    Errors:
    - 400: malformed selection
    - 404: show not found
    - 409: one or more seats are taken
    - 502: payment provider unavailable (retry after `Retry-After` seconds)
    """
    try:
        result = await service.reserve(show_id, user_id, reservation.seat_numbers)
        return ReservationResponse.from_result(result)

    except ShowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SeatsUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PaymentGatewayError as e:
        raise HTTPException(
            status_code=502,
            detail=str(e),
            headers={"Retry-After": str(PAYMENT_RETRY_AFTER_SECONDS)},
        )


@router.get("/bookings", response_model=BookingListResponse)
@limiter.limit("30/minute")
async def list_user_bookings(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    status: Optional[BookingStatus] = Query(None),
    service: ReservationService = Depends(get_reservation_service),
):
    """List all bookings for the current user"""
    bookings = await service.list_user_bookings(user_id=user_id, status=status)

    return BookingListResponse(
        bookings=[BookingResponse.from_booking(b) for b in bookings],
        total=len(bookings),
    )


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
@limiter.limit("60/minute")
async def get_booking(
    request: Request,
    booking_id: int,
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Get a specific booking by ID"""
    try:
        booking = await service.get_booking(booking_id=booking_id, user_id=user_id)
        return BookingResponse.from_booking(booking)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
