"""
Show Service - show listings and seat occupancy
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from showtime_booking.core.clock import utcnow
from showtime_booking.core.config import settings
from showtime_booking.models import Show, SeatStatus, MAX_ROWS
from showtime_booking.services.exceptions import InvalidRequestError, ShowNotFoundError
from showtime_booking.services.seat_ledger import SeatLedger
import logging

logger = logging.getLogger(__name__)


class ShowService:
    """Service for show-related operations"""

    @staticmethod
    async def create_show(
        db: AsyncSession,
        movie_title: str,
        start_time: datetime,
        rows: int,
        seats_per_row: int,
        unit_price: Decimal,
        currency: Optional[str] = None,
    ) -> Show:
        if not 1 <= rows <= MAX_ROWS:
            raise InvalidRequestError(f"A show must have between 1 and {MAX_ROWS} rows")
        if seats_per_row < 1:
            raise InvalidRequestError("A show needs at least one seat per row")
        if unit_price <= 0:
            raise InvalidRequestError("Seat price must be positive")

        show = Show(
            movie_title=movie_title,
            start_time=start_time,
            rows=rows,
            seats_per_row=seats_per_row,
            unit_price=unit_price,
            currency=(currency or settings.CURRENCY).lower(),
        )
        async with db.begin():
            db.add(show)
        logger.info(f"🎬 Created show {show.id}: {movie_title} at {start_time}", extra={'show_id': show.id})
        return show

    @staticmethod
    async def list_shows(
        db: AsyncSession,
        page: int = 1,
        page_size: int = 10,
        upcoming_only: bool = True,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Show], int]:
        """List shows with pagination, soonest first"""
        query = select(Show)
        if upcoming_only:
            query = query.where(Show.start_time >= (now or utcnow()))

        count_query = select(func.count()).select_from(query.subquery())
        count_result = await db.execute(count_query)
        total = count_result.scalar()

        query = query.order_by(Show.start_time.asc(), Show.id.asc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await db.execute(query)
        return list(result.scalars().all()), total

    @staticmethod
    async def get_show(db: AsyncSession, show_id: int) -> Show:
        show = await db.get(Show, show_id)
        if not show:
            raise ShowNotFoundError(f"Show {show_id} not found")
        return show

    @staticmethod
    async def get_occupied_seats(db: AsyncSession, show_id: int) -> Dict[str, SeatStatus]:
        """Seats currently reserved or booked for a show"""
        await ShowService.get_show(db, show_id)
        return await SeatLedger.occupied_seats(db, show_id)

    @staticmethod
    async def upcoming_shows(db: AsyncSession, now: Optional[datetime] = None) -> List[Show]:
        """Every show that hasn't started yet, soonest first"""
        result = await db.execute(
            select(Show)
            .where(Show.start_time >= (now or utcnow()))
            .order_by(Show.start_time.asc(), Show.id.asc())
        )
        return list(result.scalars().all())
