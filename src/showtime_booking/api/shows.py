"""
Shows API endpoints
Uses ShowService for business logic
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from showtime_booking.core.database import get_db
from showtime_booking.schemas import (
    ShowCreate,
    ShowResponse,
    ShowListResponse,
    OccupiedSeatsResponse,
)
from showtime_booking.services import ShowService, ShowNotFoundError, InvalidRequestError

from showtime_booking.middleware.rate_limiter import limiter

router = APIRouter()


@router.post("/shows", response_model=ShowResponse, status_code=201)
async def create_show(
    show_data: ShowCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a show (admin)"""
    try:
        show = await ShowService.create_show(
            db=db,
            movie_title=show_data.movie_title,
            start_time=show_data.start_time,
            rows=show_data.rows,
            seats_per_row=show_data.seats_per_row,
            unit_price=show_data.unit_price,
            currency=show_data.currency,
        )
        return ShowResponse.model_validate(show)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/shows", response_model=ShowListResponse)
@limiter.limit("30/minute")
async def list_shows(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    upcoming_only: bool = Query(True, description="Only shows that haven't started"),
    db: AsyncSession = Depends(get_db),
):
    """
    List shows with pagination

    - **page**: Page number (default: 1)
    - **page_size**: Items per page (default: 10, max: 100)
    - **upcoming_only**: Hide shows in the past (default: True)
    """
    shows, total = await ShowService.list_shows(
        db=db,
        page=page,
        page_size=page_size,
        upcoming_only=upcoming_only,
    )

    return ShowListResponse(
        shows=[ShowResponse.model_validate(show) for show in shows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/shows/{show_id}", response_model=ShowResponse)
async def get_show(
    show_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        show = await ShowService.get_show(db, show_id)
        return ShowResponse.model_validate(show)
    except ShowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/shows/{show_id}/occupied-seats", response_model=OccupiedSeatsResponse)
@limiter.limit("60/minute")
async def get_occupied_seats(
    request: Request,
    show_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Seats that are reserved or booked for a show

    Every seat in the grid that is not listed here is free.
    """
    try:
        occupied = await ShowService.get_occupied_seats(db, show_id)
        return OccupiedSeatsResponse(show_id=show_id, occupied_seats=occupied)
    except ShowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
