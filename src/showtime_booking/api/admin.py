"""
Admin reports: paid bookings and dashboard totals
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from showtime_booking.core.auth import verify_operator_key
from showtime_booking.core.database import get_db
from showtime_booking.core.dependencies import get_reservation_service
from showtime_booking.schemas import (
    BookingResponse,
    DashboardResponse,
    PaidBookingListResponse,
    ShowResponse,
)
from showtime_booking.services import ReservationService, ShowService

router = APIRouter(dependencies=[Depends(verify_operator_key)])


@router.get("/admin/bookings", response_model=PaidBookingListResponse)
async def list_paid_bookings(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    service: ReservationService = Depends(get_reservation_service),
):
    """All paid bookings, newest first"""
    bookings, total = await service.list_paid_bookings(page=page, page_size=page_size)

    return PaidBookingListResponse(
        bookings=[BookingResponse.from_booking(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/admin/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    service: ReservationService = Depends(get_reservation_service),
):
    """Paid booking count, revenue and upcoming shows"""
    total_bookings, total_revenue = await service.paid_totals()
    shows = await ShowService.upcoming_shows(db)

    return DashboardResponse(
        total_bookings=total_bookings,
        total_revenue=total_revenue,
        active_shows=[ShowResponse.model_validate(show) for show in shows],
    )
