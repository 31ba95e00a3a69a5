"""
Reservation Service - turns a seat selection into a PENDING booking and a
checkout session

Flow:
1. validate the selection against the show's seat grid
2. take advisory seat locks (best effort, Redis)
3. one transaction: Booking row + seat claim + expiry timer
4. open a checkout session with the payment provider
5. store the session reference on the booking

Any failure after step 2 unwinds everything done so far.
"""
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import select, delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showtime_booking.core.clock import utcnow
from showtime_booking.core.config import settings
from showtime_booking.core.metrics import reservations_total, reservation_duration_seconds
from showtime_booking.models import Booking, BookingStatus, Show, SEAT_NUMBER_PATTERN
from showtime_booking.services.exceptions import (
    BookingNotFoundError,
    InvalidRequestError,
    PaymentGatewayError,
    SeatsUnavailableError,
    ShowNotFoundError,
)
from showtime_booking.services.expiry_scheduler import ExpiryScheduler
from showtime_booking.services.payment_gateway import PaymentGateway
from showtime_booking.services.seat_ledger import SeatLedger
from showtime_booking.services.seat_locks import LockOutcome, SeatLockManager
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    booking_id: int
    payment_url: str
    amount: Decimal
    currency: str
    hold_expires_at: datetime
    seat_numbers: List[str]


class ReservationService:
    """Coordinates locks, ledger and payment provider for one reservation"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seat_locks: SeatLockManager,
        gateway: PaymentGateway,
        hold_window_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.seat_locks = seat_locks
        self.gateway = gateway
        self.hold_window = timedelta(minutes=hold_window_minutes or settings.HOLD_WINDOW_MINUTES)

    async def reserve(self, show_id: int, user_id: str, seat_numbers: List[str]) -> ReservationResult:
        start_time = time.time()
        try:
            result = await self._reserve(show_id, user_id, seat_numbers)
        except InvalidRequestError:
            reservations_total.labels(result="invalid").inc()
            raise
        except SeatsUnavailableError:
            reservations_total.labels(result="seats_unavailable").inc()
            raise
        except PaymentGatewayError:
            reservations_total.labels(result="gateway_error").inc()
            raise
        finally:
            reservation_duration_seconds.observe(time.time() - start_time)

        reservations_total.labels(result="created").inc()
        return result

    async def _reserve(self, show_id: int, user_id: str, seat_numbers: List[str]) -> ReservationResult:
        seats = self._normalize(seat_numbers)
        if not user_id:
            raise InvalidRequestError("user_id is required")

        # 1. Validate against the show
        async with self.session_factory() as db:
            show = await db.get(Show, show_id)
        if show is None:
            raise ShowNotFoundError(f"Show {show_id} not found")

        outside = [seat for seat in seats if not show.has_seat(seat)]
        if outside:
            raise InvalidRequestError(f"Seats {', '.join(outside)} do not exist for show {show_id}")

        # 2. Advisory locks
        holder = uuid.uuid4().hex
        lock_outcome = await self.seat_locks.acquire_all(show_id, seats, holder)
        if lock_outcome == LockOutcome.CONFLICT:
            raise SeatsUnavailableError("Selected seats are being reserved by another user", seats=seats)

        # 3. Booking + seat claim + expiry timer, atomically
        created_at = utcnow()
        hold_expires_at = created_at + self.hold_window
        amount = show.unit_price * len(seats)
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    booking = Booking(
                        user_id=user_id,
                        show_id=show_id,
                        seat_numbers=seats,
                        amount=amount,
                        currency=show.currency,
                        status=BookingStatus.PENDING,
                        lock_token=holder,
                        created_at=created_at,
                        hold_expires_at=hold_expires_at,
                    )
                    db.add(booking)
                    await db.flush()

                    claim = await SeatLedger.try_claim(db, show_id, seats, booking.id)
                    if not claim.ok:
                        raise SeatsUnavailableError(
                            f"Seats {', '.join(claim.conflicting_seats)} are not available",
                            seats=claim.conflicting_seats,
                        )

                    await ExpiryScheduler.schedule(db, booking.id, hold_expires_at)
        except Exception:
            await self.seat_locks.release_all(show_id, seats, holder)
            raise

        booking_id = booking.id
        logger.info(
            f"🎟️ Booking {booking_id} reserved {len(seats)} seats on show {show_id}",
            extra={'booking_id': booking_id, 'show_id': show_id, 'user_id': user_id, 'seat_numbers': seats}
        )

        # 4. Checkout session
        try:
            session = await self.gateway.create_session(
                amount=amount,
                currency=show.currency,
                success_url=f"{settings.FRONTEND_URL}/my-bookings?booking_id={booking_id}",
                cancel_url=f"{settings.FRONTEND_URL}/my-bookings",
                metadata={"booking_id": str(booking_id)},
                idempotency_key=f"booking-{booking_id}",
            )
        except Exception as e:
            logger.error(
                f"❌ Checkout session failed for booking {booking_id}: {e}",
                extra={'booking_id': booking_id}
            )
            await self._unwind(booking_id, show_id, seats, holder)
            if isinstance(e, PaymentGatewayError):
                raise
            raise PaymentGatewayError(f"Could not open checkout session: {e}") from e

        # 5. Remember the session
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    await db.execute(
                        update(Booking)
                        .where(Booking.id == booking_id)
                        .values(payment_reference=session.reference, payment_url=session.url)
                        .execution_options(synchronize_session=False)
                    )
        except Exception:
            await self._unwind(booking_id, show_id, seats, holder)
            raise

        return ReservationResult(
            booking_id=booking_id,
            payment_url=session.url,
            amount=amount,
            currency=show.currency,
            hold_expires_at=hold_expires_at,
            seat_numbers=seats,
        )

    @staticmethod
    def _normalize(seat_numbers: List[str]) -> List[str]:
        """Validate the shape of a seat selection, independent of any show"""
        if not seat_numbers:
            raise InvalidRequestError("At least one seat must be selected")

        if len(seat_numbers) > settings.MAX_SEATS_PER_BOOKING:
            raise InvalidRequestError(
                f"Cannot book more than {settings.MAX_SEATS_PER_BOOKING} seats at once"
            )

        seats = [str(seat).strip().upper() for seat in seat_numbers]

        malformed = [seat for seat in seats if not SEAT_NUMBER_PATTERN.match(seat)]
        if malformed:
            raise InvalidRequestError(f"Malformed seat numbers: {', '.join(malformed)}")

        if len(set(seats)) != len(seats):
            raise InvalidRequestError("Duplicate seats in selection")

        return seats

    async def _unwind(self, booking_id: int, show_id: int, seats: List[str], holder: str) -> None:
        """Compensate for a reservation that could not reach the payment step"""
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    await SeatLedger.release(db, booking_id)
                    await ExpiryScheduler.cancel(db, booking_id)
                    await db.execute(
                        delete(Booking)
                        .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                        .execution_options(synchronize_session=False)
                    )
        except Exception as e:
            # The expiry timer is still in place and will release the seats
            logger.error(
                f"❌ Could not unwind booking {booking_id}: {e}",
                extra={'booking_id': booking_id}
            )
        await self.seat_locks.release_all(show_id, seats, holder)

    async def get_booking(self, booking_id: int, user_id: str) -> Booking:
        async with self.session_factory() as db:
            booking = await db.get(Booking, booking_id)
        if booking is None or booking.user_id != user_id:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def list_user_bookings(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """Get all bookings for a user, newest first"""
        query = select(Booking).where(Booking.user_id == user_id)
        if status:
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc())

        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_paid_bookings(self, page: int = 1, page_size: int = 50) -> Tuple[List[Booking], int]:
        """All PAID bookings across users, newest first (admin)"""
        query = select(Booking).where(Booking.status == BookingStatus.PAID)

        async with self.session_factory() as db:
            count_result = await db.execute(select(func.count()).select_from(query.subquery()))
            total = count_result.scalar()

            query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
            query = query.offset((page - 1) * page_size).limit(page_size)
            result = await db.execute(query)
            return list(result.scalars().all()), total

    async def paid_totals(self) -> Tuple[int, Decimal]:
        """Number of PAID bookings and the revenue they brought in"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(Booking.id), func.coalesce(func.sum(Booking.amount), 0))
                .where(Booking.status == BookingStatus.PAID)
            )
            count, revenue = result.one()
        return count, Decimal(str(revenue)).quantize(Decimal("0.01"))
