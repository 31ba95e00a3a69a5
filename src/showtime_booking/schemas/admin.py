"""Pydantic schemas for admin reports"""
from decimal import Decimal
from typing import List
from pydantic import BaseModel

from showtime_booking.schemas.booking import BookingResponse
from showtime_booking.schemas.show import ShowResponse


class PaidBookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int
    page: int
    page_size: int


class DashboardResponse(BaseModel):
    total_bookings: int
    total_revenue: Decimal
    active_shows: List[ShowResponse]
