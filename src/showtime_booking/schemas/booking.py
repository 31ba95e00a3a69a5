"""Pydantic schemas for Booking resources"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from showtime_booking.models.booking import BookingStatus


class ReservationCreate(BaseModel):
    seat_numbers: List[str] = Field(..., description="Seats to reserve, e.g. [\"A1\", \"A2\"]")


class ReservationResponse(BaseModel):
    booking_id: int
    payment_url: str
    amount: Decimal
    currency: str
    hold_expires_at: datetime
    seat_numbers: List[str]

    @classmethod
    def from_result(cls, result):
        """Convert a ReservationResult to response"""
        return cls(
            booking_id=result.booking_id,
            payment_url=result.payment_url,
            amount=result.amount,
            currency=result.currency,
            hold_expires_at=result.hold_expires_at,
            seat_numbers=result.seat_numbers,
        )


class BookingResponse(BaseModel):
    id: int
    user_id: str
    show_id: int
    seat_numbers: List[str]
    status: BookingStatus
    amount: Decimal
    currency: str
    payment_url: Optional[str] = None
    created_at: datetime
    hold_expires_at: datetime
    paid_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    time_remaining_seconds: int = 0

    @classmethod
    def from_booking(cls, booking):
        """Convert Booking ORM model to response"""
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            show_id=booking.show_id,
            seat_numbers=booking.seat_numbers,
            status=booking.status,
            amount=booking.amount,
            currency=booking.currency,
            payment_url=booking.payment_url if booking.is_pending else None,
            created_at=booking.created_at,
            hold_expires_at=booking.hold_expires_at,
            paid_at=booking.paid_at,
            expired_at=booking.expired_at,
            refunded_at=booking.refunded_at,
            time_remaining_seconds=booking.time_remaining_seconds(),
        )


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int


class WebhookAck(BaseModel):
    received: bool = True
    outcome: Optional[str] = None
