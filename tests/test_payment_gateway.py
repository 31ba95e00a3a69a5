"""
Payment gateway tests: Stripe calls, webhook signatures and event parsing
"""
import json
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from showtime_booking.api.webhooks import parse_payment_notification
from showtime_booking.core.config import settings
from showtime_booking.services import (
    PaymentGatewayError,
    SignatureInvalidError,
    SimulatedPaymentGateway,
    StripePaymentGateway,
    build_payment_gateway,
)
from showtime_booking.services.payment_gateway import STRIPE_MIN_SESSION_SECONDS, from_minor_units, to_minor_units

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def stripe_gateway():
    return StripePaymentGateway(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=1)


@pytest.fixture
def signer():
    return SimulatedPaymentGateway(webhook_secret=WEBHOOK_SECRET, base_url="https://pay.test")


def test_minor_units():
    assert to_minor_units(Decimal("12.50")) == 1250
    assert to_minor_units(Decimal("0.01")) == 1
    assert to_minor_units(Decimal("30")) == 3000
    assert from_minor_units(1999) == Decimal("19.99")
    assert from_minor_units(None) is None


@pytest.mark.asyncio
async def test_stripe_checkout_session_params(stripe_gateway, monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    session = await stripe_gateway.create_session(
        amount=Decimal("25.00"),
        currency="USD",
        success_url="https://app.test/ok",
        cancel_url="https://app.test/cancel",
        metadata={"booking_id": "42"},
        idempotency_key="booking-42",
    )

    assert session.reference == "cs_test_1"
    assert session.url == "https://checkout.stripe.com/c/cs_test_1"

    params = calls[0]
    assert params["mode"] == "payment"
    assert params["api_key"] == "sk_test_123"
    assert params["idempotency_key"] == "booking-42"
    assert params["metadata"] == {"booking_id": "42"}
    assert params["payment_intent_data"] == {"metadata": {"booking_id": "42"}}
    price_data = params["line_items"][0]["price_data"]
    assert price_data["unit_amount"] == 2500
    assert price_data["currency"] == "usd"
    # Closes as soon as Stripe allows after the 10 minute hold
    assert abs(params["expires_at"] - (int(time.time()) + STRIPE_MIN_SESSION_SECONDS)) <= 5


def test_checkout_session_lifetime_follows_long_holds():
    gateway = StripePaymentGateway(
        api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=1, session_ttl_seconds=3600
    )
    assert gateway.session_ttl_seconds == 3600

    short = StripePaymentGateway(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=1, session_ttl_seconds=60)
    assert short.session_ttl_seconds == STRIPE_MIN_SESSION_SECONDS


@pytest.mark.asyncio
async def test_stripe_refund_params(stripe_gateway, monkeypatch):
    calls = []

    def fake_refund(**params):
        calls.append(params)
        return SimpleNamespace(id="re_test_1")

    monkeypatch.setattr(stripe.Refund, "create", fake_refund)

    reference = await stripe_gateway.refund("pi_123", Decimal("20.00"), idempotency_key="refund-7")

    assert reference == "re_test_1"
    assert calls == [{
        "api_key": "sk_test_123",
        "payment_intent": "pi_123",
        "amount": 2000,
        "idempotency_key": "refund-7",
    }]


@pytest.mark.asyncio
async def test_stripe_error_becomes_gateway_error(stripe_gateway, monkeypatch):
    def fake_create(**params):
        raise stripe.APIConnectionError("Network error")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    with pytest.raises(PaymentGatewayError):
        await stripe_gateway.create_session(
            amount=Decimal("10.00"),
            currency="usd",
            success_url="https://app.test/ok",
            cancel_url="https://app.test/cancel",
            metadata={"booking_id": "1"},
            idempotency_key="booking-1",
        )


@pytest.mark.asyncio
async def test_slow_provider_times_out(monkeypatch):
    gateway = StripePaymentGateway(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=0.05)

    def slow_refund(**params):
        time.sleep(0.5)
        return SimpleNamespace(id="re_late")

    monkeypatch.setattr(stripe.Refund, "create", slow_refund)

    with pytest.raises(PaymentGatewayError):
        await gateway.refund("pi_123", Decimal("10.00"), idempotency_key="refund-1")


@pytest.mark.asyncio
async def test_simulated_sessions_are_idempotent(signer):
    first = await signer.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-1")
    again = await signer.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-1")
    other = await signer.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-2")

    assert first == again
    assert first.reference != other.reference
    assert first.url == f"https://pay.test/checkout/{first.reference}"


@pytest.mark.asyncio
async def test_simulated_sessions_are_bounded():
    gateway = SimulatedPaymentGateway(webhook_secret=WEBHOOK_SECRET, max_sessions=2)

    first = await gateway.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-1")
    await gateway.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-2")
    # Reusing booking-1 keeps it, so booking-2 is the oldest when booking-3 arrives
    assert await gateway.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-1") == first
    await gateway.create_session(Decimal("10.00"), "usd", "ok", "cancel", {}, "booking-3")

    assert list(gateway._sessions) == ["booking-1", "booking-3"]


def test_verify_webhook_accepts_valid_signature(stripe_gateway, signer):
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()

    event = stripe_gateway.verify_webhook(payload, signer.sign(payload))

    assert event == {"id": "evt_1", "type": "checkout.session.completed"}


def test_verify_webhook_rejects_wrong_secret(stripe_gateway):
    other = SimulatedPaymentGateway(webhook_secret="whsec_someone_else")
    payload = b'{"id": "evt_1"}'

    with pytest.raises(SignatureInvalidError):
        stripe_gateway.verify_webhook(payload, other.sign(payload))


def test_verify_webhook_rejects_tampered_payload(stripe_gateway, signer):
    payload = b'{"id": "evt_1"}'
    signature = signer.sign(payload)

    with pytest.raises(SignatureInvalidError):
        stripe_gateway.verify_webhook(b'{"id": "evt_2"}', signature)


def test_verify_webhook_rejects_stale_timestamp(stripe_gateway, signer):
    payload = b'{"id": "evt_1"}'

    with pytest.raises(SignatureInvalidError):
        stripe_gateway.verify_webhook(payload, signer.sign(payload, timestamp=int(time.time()) - 3600))


@pytest.mark.parametrize("header", ["", "garbage", "t=123"])
def test_verify_webhook_rejects_malformed_header(stripe_gateway, header):
    with pytest.raises(SignatureInvalidError):
        stripe_gateway.verify_webhook(b'{"id": "evt_1"}', header)


def test_verify_webhook_rejects_invalid_json(stripe_gateway, signer):
    payload = b"not json"

    with pytest.raises(SignatureInvalidError):
        stripe_gateway.verify_webhook(payload, signer.sign(payload))


def test_build_payment_gateway(monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_PROVIDER", "simulated")
    assert isinstance(build_payment_gateway(), SimulatedPaymentGateway)

    monkeypatch.setattr(settings, "PAYMENT_PROVIDER", "stripe")
    assert isinstance(build_payment_gateway(), StripePaymentGateway)

    monkeypatch.setattr(settings, "PAYMENT_PROVIDER", "paypal")
    with pytest.raises(ValueError):
        build_payment_gateway()


# ==================== Webhook event parsing ====================

def session_event(event_type="checkout.session.completed", **session):
    obj = {
        "id": "cs_1",
        "amount_total": 2500,
        "payment_intent": "pi_9",
        "payment_status": "paid",
        "metadata": {"booking_id": "42"},
    }
    obj.update(session)
    return {"id": "evt_9", "type": event_type, "data": {"object": obj}}


def test_parse_completed_checkout():
    notification = parse_payment_notification(session_event())

    assert notification.booking_id == 42
    assert notification.amount_paid == Decimal("25.00")
    assert notification.payment_intent_ref == "pi_9"
    assert notification.event_id == "evt_9"


def test_parse_async_payment_succeeded():
    event = session_event("checkout.session.async_payment_succeeded")
    assert parse_payment_notification(event).booking_id == 42


@pytest.mark.parametrize("event", [
    session_event("checkout.session.expired"),
    session_event("payment_intent.created"),
    session_event(payment_status="unpaid"),
    session_event(metadata={}),
    session_event(metadata={"booking_id": "abc"}),
    {"type": "checkout.session.completed"},
])
def test_parse_ignores_events_that_are_not_payments(event):
    assert parse_payment_notification(event) is None
