import os
import tempfile

# Settings are read at import time, so configure the app before importing it
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "showtime_booking_app.db")
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EXPIRY_WORKER_ENABLED"] = "false"
os.environ["PAYMENT_PROVIDER"] = "simulated"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["LOG_JSON"] = "false"
os.environ["OPERATOR_API_KEY"] = "operator-test-key"

from datetime import timedelta
from decimal import Decimal

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import create_engine_for, create_session_factory, drop_db, get_db, init_db
from showtime_booking.core.dependencies import (
    get_payment_gateway,
    get_reconciler,
    get_reservation_service,
)
from showtime_booking.core.redis import RedisClient
from showtime_booking.models import Booking, ScheduledExpiry, Seat
from showtime_booking.services import (
    BookingNotifier,
    BookingReconciler,
    PaymentGatewayError,
    ReservationService,
    SeatLockManager,
    ShowService,
    SimulatedPaymentGateway,
)

WEBHOOK_SECRET = "whsec_test_secret"


class FakePaymentGateway(SimulatedPaymentGateway):
    """Simulated provider that records calls and can be told to fail"""

    def __init__(self):
        super().__init__(webhook_secret=WEBHOOK_SECRET, base_url="https://pay.test")
        self.sessions = []
        self.refunds = []
        self.fail_sessions = False
        self.fail_refunds = False

    async def create_session(self, amount, currency, success_url, cancel_url, metadata, idempotency_key):
        if self.fail_sessions:
            raise PaymentGatewayError("Payment provider unavailable")
        session = await super().create_session(amount, currency, success_url, cancel_url, metadata, idempotency_key)
        self.sessions.append({
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
            "reference": session.reference,
        })
        return session

    async def refund(self, payment_intent_ref, amount, idempotency_key):
        if self.fail_refunds:
            raise PaymentGatewayError("Refund failed")
        self.refunds.append({
            "payment_intent_ref": payment_intent_ref,
            "amount": amount,
            "idempotency_key": idempotency_key,
        })
        return f"re_test_{len(self.refunds)}"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file for each test"""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def redis():
    """Redis client backed by an isolated in-memory server"""
    client = RedisClient(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))
    yield client
    await client.close()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def seat_locks(redis):
    return SeatLockManager(redis, ttl_seconds=600)


@pytest.fixture
def notifier(redis):
    return BookingNotifier(redis, channel="notifications:bookings")


@pytest.fixture
def reservation_service(session_factory, seat_locks, gateway):
    return ReservationService(session_factory, seat_locks, gateway)


@pytest.fixture
def reconciler(session_factory, seat_locks, gateway, notifier):
    return BookingReconciler(session_factory, seat_locks, gateway, notifier)


@pytest_asyncio.fixture
async def show(session_factory):
    """Two rows of five seats, A1-A5 and B1-B5, at 10.00 each"""
    async with session_factory() as db:
        return await ShowService.create_show(
            db,
            movie_title="Arrival",
            start_time=utcnow() + timedelta(days=1),
            rows=2,
            seats_per_row=5,
            unit_price=Decimal("10.00"),
            currency="usd",
        )


@pytest_asyncio.fixture
async def client(session_factory, reservation_service, reconciler, gateway):
    """HTTP client wired to the test database, fake Redis and fake gateway"""
    from showtime_booking.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reservation_service] = lambda: reservation_service
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def fetch_booking(session_factory):
    """Read a booking straight from the database"""

    async def _fetch(booking_id):
        async with session_factory() as db:
            return await db.get(Booking, booking_id)

    return _fetch


@pytest.fixture
def fetch_seats(session_factory):
    """Map of seat_number -> (booking_id, status) for a show"""

    async def _fetch(show_id):
        async with session_factory() as db:
            result = await db.execute(select(Seat).where(Seat.show_id == show_id))
            return {seat.seat_number: (seat.booking_id, seat.status) for seat in result.scalars().all()}

    return _fetch


@pytest.fixture
def fetch_timer(session_factory):

    async def _fetch(booking_id):
        async with session_factory() as db:
            return await db.get(ScheduledExpiry, booking_id)

    return _fetch
