"""
Pydantic schemas for Show resources
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from showtime_booking.models import SeatStatus, MAX_ROWS


class ShowBase(BaseModel):
    """Base Show schema"""
    movie_title: str = Field(..., max_length=500, description="Movie title")
    start_time: datetime = Field(..., description="Show start time (UTC)")
    rows: int = Field(..., ge=1, le=MAX_ROWS, description="Number of seat rows (A-Z)")
    seats_per_row: int = Field(..., ge=1, le=100, description="Seats in each row")
    unit_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Price per seat")

    @field_validator("start_time")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class ShowCreate(ShowBase):
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO currency code")


class ShowResponse(ShowBase):
    """Show response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    currency: str
    total_seats: int
    created_at: datetime


class ShowListResponse(BaseModel):
    """Response schema for listing shows"""
    shows: List[ShowResponse]
    total: int
    page: int
    page_size: int


class OccupiedSeatsResponse(BaseModel):
    show_id: int
    occupied_seats: Dict[str, SeatStatus]
