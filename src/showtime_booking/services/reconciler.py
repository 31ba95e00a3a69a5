"""
Confirmation Reconciler - the only code that moves a booking out of PENDING

Two independent entry points race for every booking:

    handle_payment_succeeded  (payment webhook)   PENDING -> PAID
    handle_expiry             (expiry timer)      PENDING -> EXPIRED

Both go through `transition`, a single conditional UPDATE on
Booking.status. Whichever commits first wins. The loser observes the
terminal state and turns into a no-op, except a payment that lost to
expiry, which is refunded exactly once.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showtime_booking.core.clock import utcnow
from showtime_booking.core.metrics import record_reconcile_outcome, refunds_issued_total
from showtime_booking.models import Booking, BookingStatus
from showtime_booking.services.expiry_scheduler import ExpiryScheduler
from showtime_booking.services.notifications import BookingNotifier
from showtime_booking.services.payment_gateway import PaymentGateway
from showtime_booking.services.seat_ledger import SeatLedger
from showtime_booking.services.seat_locks import SeatLockManager
import logging

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"
    DUPLICATE = "DUPLICATE"
    STALE = "STALE"
    NOT_DUE = "NOT_DUE"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class PaymentNotification:
    """A verified payment-succeeded event from the provider"""
    booking_id: int
    amount_paid: Optional[Decimal] = None
    payment_intent_ref: Optional[str] = None
    event_id: Optional[str] = None


class BookingReconciler:
    """Applies payment and expiry events to bookings"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seat_locks: SeatLockManager,
        gateway: PaymentGateway,
        notifier: BookingNotifier,
    ):
        self.session_factory = session_factory
        self.seat_locks = seat_locks
        self.gateway = gateway
        self.notifier = notifier

    @staticmethod
    async def transition(db: AsyncSession, booking_id: int, target: BookingStatus, *conditions, **values) -> bool:
        """
        Move a PENDING booking to `target`.

        Extra `conditions` narrow the match further (the expiry path only
        matches holds that have run out).

        Returns False when the booking is no longer PENDING (or is gone).
        The caller treats that as a silent no-op.
        """
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING, *conditions)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def handle_payment_succeeded(self, notification: PaymentNotification) -> ReconcileOutcome:
        booking_id = notification.booking_id
        now = utcnow()

        async with self.session_factory() as db:
            async with db.begin():
                won = await self.transition(
                    db,
                    booking_id,
                    BookingStatus.PAID,
                    paid_at=now,
                    payment_intent_ref=notification.payment_intent_ref,
                )
                if won:
                    booked = await SeatLedger.mark_booked(db, booking_id)
                    await ExpiryScheduler.cancel(db, booking_id)
                booking = await db.get(Booking, booking_id)

        if booking is None:
            logger.warning(
                f"⚠️ Payment received for unknown booking {booking_id}, ignoring",
                extra={'booking_id': booking_id}
            )
            return self._done("payment", ReconcileOutcome.NOT_FOUND)

        if won:
            logger.info(
                f"✅ Booking {booking_id} paid, {booked} seats booked",
                extra={'booking_id': booking_id, 'show_id': booking.show_id, 'user_id': booking.user_id}
            )
            await self.seat_locks.release_all(booking.show_id, booking.seat_numbers, booking.lock_token)
            await self.notifier.booking_confirmed(booking)
            return self._done("payment", ReconcileOutcome.CONFIRMED)

        if booking.status == BookingStatus.PAID:
            logger.info(
                f"🔁 Duplicate payment notification for booking {booking_id}",
                extra={'booking_id': booking_id}
            )
            return self._done("payment", ReconcileOutcome.DUPLICATE)

        # Lost to expiry: the customer paid for seats we already gave back
        return self._done("payment", await self._refund_late_payment(booking, notification, now))

    async def _refund_late_payment(
        self,
        booking: Booking,
        notification: PaymentNotification,
        now: datetime
    ) -> ReconcileOutcome:
        payment_intent_ref = notification.payment_intent_ref or booking.payment_intent_ref
        if not payment_intent_ref:
            logger.error(
                f"❌ Late payment for expired booking {booking.id} has no payment reference, cannot refund",
                extra={'booking_id': booking.id}
            )
            return ReconcileOutcome.STALE

        # Claim the refund before calling the provider so duplicates can't issue a second one
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Booking)
                    .where(
                        Booking.id == booking.id,
                        Booking.status == BookingStatus.EXPIRED,
                        Booking.refunded_at.is_(None),
                    )
                    .values(refunded_at=now, payment_intent_ref=payment_intent_ref)
                    .execution_options(synchronize_session=False)
                )
                claimed = result.rowcount == 1

        if not claimed:
            logger.info(
                f"🔁 Refund for booking {booking.id} already issued",
                extra={'booking_id': booking.id}
            )
            return ReconcileOutcome.DUPLICATE

        amount = notification.amount_paid if notification.amount_paid is not None else booking.amount
        try:
            refund_reference = await self.gateway.refund(
                payment_intent_ref,
                amount,
                idempotency_key=f"refund-{booking.id}",
            )
        except Exception:
            # Give the claim back so the provider's redelivery retries the refund
            async with self.session_factory() as db:
                async with db.begin():
                    await db.execute(
                        update(Booking)
                        .where(Booking.id == booking.id, Booking.refund_reference.is_(None))
                        .values(refunded_at=None)
                        .execution_options(synchronize_session=False)
                    )
            raise

        async with self.session_factory() as db:
            async with db.begin():
                await db.execute(
                    update(Booking)
                    .where(Booking.id == booking.id)
                    .values(refund_reference=refund_reference)
                    .execution_options(synchronize_session=False)
                )

        refunds_issued_total.inc()
        logger.warning(
            f"💸 Payment for expired booking {booking.id} refunded ({refund_reference})",
            extra={'booking_id': booking.id, 'user_id': booking.user_id}
        )
        return ReconcileOutcome.REFUNDED

    async def handle_expiry(self, booking_id: int, now: Optional[datetime] = None) -> ReconcileOutcome:
        """
        Expire a PENDING booking whose hold has run out at `now`.

        A hold that has not run out yet is left PENDING and its timer stays
        armed (NOT_DUE).
        """
        now = now or utcnow()

        async with self.session_factory() as db:
            async with db.begin():
                won = await self.transition(
                    db,
                    booking_id,
                    BookingStatus.EXPIRED,
                    Booking.hold_expires_at <= now,
                    expired_at=now,
                )
                if won:
                    released = await SeatLedger.release(db, booking_id)
                booking = await db.get(Booking, booking_id)
                if booking is not None and not booking.is_pending:
                    await ExpiryScheduler.mark_fired(db, booking_id, now)

        if booking is None:
            logger.warning(f"⚠️ Expiry fired for unknown booking {booking_id}", extra={'booking_id': booking_id})
            return self._done("expiry", ReconcileOutcome.NOT_FOUND)

        if booking.is_pending:
            logger.warning(
                f"⚠️ Expiry for booking {booking_id} requested before its hold ends at {booking.hold_expires_at}",
                extra={'booking_id': booking_id}
            )
            return self._done("expiry", ReconcileOutcome.NOT_DUE)

        if not won:
            outcome = ReconcileOutcome.STALE if booking.status == BookingStatus.PAID else ReconcileOutcome.DUPLICATE
            logger.info(
                f"⏭️ Expiry for booking {booking_id} skipped, already {booking.status.value}",
                extra={'booking_id': booking_id}
            )
            return self._done("expiry", outcome)

        logger.info(
            f"⏰ Booking {booking_id} expired, released {released} seats",
            extra={'booking_id': booking_id, 'show_id': booking.show_id, 'user_id': booking.user_id}
        )
        await self.seat_locks.release_all(booking.show_id, booking.seat_numbers, booking.lock_token)
        await self.notifier.booking_expired(booking)
        return self._done("expiry", ReconcileOutcome.EXPIRED)

    @staticmethod
    def _done(source: str, outcome: ReconcileOutcome) -> ReconcileOutcome:
        record_reconcile_outcome(source, outcome)
        return outcome
