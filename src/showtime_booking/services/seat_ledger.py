"""
Seat Ledger - the authoritative record of which seats are taken

Every write here is a single conditional statement executed inside the
caller's transaction. The unique (show_id, seat_number) constraint on the
seats table arbitrates concurrent claims.
"""
from dataclasses import dataclass, field
from typing import Dict, List
from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from showtime_booking.core.clock import utcnow
from showtime_booking.models import Seat, SeatStatus
import logging

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    ok: bool
    conflicting_seats: List[str] = field(default_factory=list)


class SeatLedger:
    """Service for claiming, booking and releasing seat rows"""

    @staticmethod
    async def try_claim(
        db: AsyncSession,
        show_id: int,
        seat_numbers: List[str],
        booking_id: int
    ) -> ClaimResult:
        """
        Insert one RESERVED row per seat, all or nothing.

        Runs in a SAVEPOINT so a unique violation on any seat undoes the
        whole claim while leaving the caller's transaction usable.
        """
        now = utcnow()
        rows = [
            {
                "show_id": show_id,
                "seat_number": seat_number,
                "booking_id": booking_id,
                "status": SeatStatus.RESERVED,
                "created_at": now,
                "updated_at": now,
            }
            for seat_number in seat_numbers
        ]

        try:
            async with db.begin_nested():
                await db.execute(insert(Seat), rows)
        except IntegrityError:
            result = await db.execute(
                select(Seat.seat_number).where(
                    Seat.show_id == show_id,
                    Seat.seat_number.in_(seat_numbers),
                )
            )
            taken = sorted(result.scalars().all())
            logger.info(
                f"🪑 Seat claim conflict on show {show_id}: {taken}",
                extra={'show_id': show_id, 'booking_id': booking_id, 'seat_numbers': taken}
            )
            # The holder may have released between the failed insert and the read
            return ClaimResult(ok=False, conflicting_seats=taken or sorted(seat_numbers))

        return ClaimResult(ok=True)

    @staticmethod
    async def release(db: AsyncSession, booking_id: int) -> int:
        """Delete the booking's RESERVED rows. BOOKED rows are never released."""
        result = await db.execute(
            delete(Seat)
            .where(Seat.booking_id == booking_id, Seat.status == SeatStatus.RESERVED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def mark_booked(db: AsyncSession, booking_id: int) -> int:
        result = await db.execute(
            update(Seat)
            .where(Seat.booking_id == booking_id, Seat.status == SeatStatus.RESERVED)
            .values(status=SeatStatus.BOOKED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def occupied_seats(db: AsyncSession, show_id: int) -> Dict[str, SeatStatus]:
        """Map of every claimed seat in a show to its status"""
        result = await db.execute(
            select(Seat.seat_number, Seat.status).where(Seat.show_id == show_id)
        )
        return {seat_number: status for seat_number, status in result.all()}
