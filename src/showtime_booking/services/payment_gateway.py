"""
Payment Session Gateway

Opens hosted checkout sessions, issues refunds and verifies webhook
signatures. Every provider call runs off the event loop under a bounded
timeout and is attempted exactly once; failures surface as
PaymentGatewayError.
"""
import asyncio
import hashlib
import hmac
import json
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import stripe

from showtime_booking.core.config import settings
from showtime_booking.core.metrics import payment_gateway_errors_total
from showtime_booking.services.exceptions import PaymentGatewayError, SignatureInvalidError
import logging

logger = logging.getLogger(__name__)

# Stripe refuses Checkout sessions that expire sooner than this
STRIPE_MIN_SESSION_SECONDS = 30 * 60


@dataclass(frozen=True)
class PaymentSession:
    reference: str
    url: str


def to_minor_units(amount: Decimal) -> int:
    """12.50 -> 1250"""
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def from_minor_units(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


class PaymentGateway(Protocol):
    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> PaymentSession:
        ...

    async def refund(self, payment_intent_ref: str, amount: Decimal, idempotency_key: str) -> str:
        ...

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        ...


class WebhookVerifier:
    """Stripe-style `t=<ts>,v1=<hmac>` signature check shared by both gateways"""

    def __init__(self, webhook_secret: str):
        self.webhook_secret = webhook_secret

    def verify_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalidError(f"Invalid webhook signature: {e}") from e
        except ValueError as e:
            raise SignatureInvalidError(f"Invalid webhook payload: {e}") from e
        return json.loads(payload)


class StripePaymentGateway(WebhookVerifier):
    """Stripe Checkout and Refunds"""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        timeout_seconds: float,
        session_ttl_seconds: Optional[int] = None,
    ):
        super().__init__(webhook_secret)
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        # Close checkout as soon as the provider allows once the hold is over
        self.session_ttl_seconds = max(
            session_ttl_seconds or settings.hold_window_seconds,
            STRIPE_MIN_SESSION_SECONDS,
        )

    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> PaymentSession:
        session = await self._call(
            "create_session",
            stripe.checkout.Session.create,
            api_key=self.api_key,
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {"name": f"Booking #{metadata.get('booking_id', '')}".strip()},
                    "unit_amount": to_minor_units(amount),
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
            expires_at=int(time.time()) + self.session_ttl_seconds,
            idempotency_key=idempotency_key,
        )
        return PaymentSession(reference=session.id, url=session.url)

    async def refund(self, payment_intent_ref: str, amount: Decimal, idempotency_key: str) -> str:
        refund = await self._call(
            "refund",
            stripe.Refund.create,
            api_key=self.api_key,
            payment_intent=payment_intent_ref,
            amount=to_minor_units(amount),
            idempotency_key=idempotency_key,
        )
        return refund.id

    async def _call(self, operation: str, func, **params):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, **params),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            payment_gateway_errors_total.labels(operation=operation).inc()
            logger.error(f"❌ Stripe {operation} timed out after {self.timeout_seconds}s")
            raise PaymentGatewayError(f"Payment provider timed out during {operation}") from e
        except stripe.StripeError as e:
            payment_gateway_errors_total.labels(operation=operation).inc()
            logger.error(f"❌ Stripe {operation} failed: {e}")
            raise PaymentGatewayError(f"Payment provider error during {operation}: {e}") from e


class SimulatedPaymentGateway(WebhookVerifier):
    """
    Local stand-in for development.

    Sessions point at the frontend; a payment is completed by posting a
    webhook signed with `sign()` (see scripts/simulate_payment.py).
    """

    def __init__(self, webhook_secret: str, base_url: str = None, max_sessions: int = 1000):
        super().__init__(webhook_secret)
        self.base_url = (base_url or settings.FRONTEND_URL).rstrip("/")
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, str]" = OrderedDict()

    async def create_session(
        self,
        amount: Decimal,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> PaymentSession:
        # Same key, same session, like the real provider
        reference = self._sessions.get(idempotency_key)
        if reference is None:
            reference = f"cs_sim_{uuid.uuid4().hex}"
            self._sessions[idempotency_key] = reference
            # Oldest keys go first
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
        else:
            self._sessions.move_to_end(idempotency_key)
        logger.info(f"💳 Simulated checkout {reference} for {amount} {currency}")
        return PaymentSession(reference=reference, url=f"{self.base_url}/checkout/{reference}")

    async def refund(self, payment_intent_ref: str, amount: Decimal, idempotency_key: str) -> str:
        logger.info(f"💸 Simulated refund of {amount} for {payment_intent_ref}")
        return f"re_sim_{uuid.uuid4().hex}"

    def sign(self, payload: bytes, timestamp: Optional[int] = None) -> str:
        """Build a Stripe-Signature header for a payload"""
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed = f"{timestamp}.".encode() + payload
        digest = hmac.new(self.webhook_secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"


def build_payment_gateway() -> PaymentGateway:
    """Pick the provider named by PAYMENT_PROVIDER"""
    if settings.PAYMENT_PROVIDER == "stripe":
        return StripePaymentGateway(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            timeout_seconds=settings.PAYMENT_TIMEOUT_SECONDS,
        )
    if settings.PAYMENT_PROVIDER == "simulated":
        return SimulatedPaymentGateway(webhook_secret=settings.STRIPE_WEBHOOK_SECRET)
    raise ValueError(f"Unknown PAYMENT_PROVIDER: {settings.PAYMENT_PROVIDER}")
