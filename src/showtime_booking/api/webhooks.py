"""
Payment provider webhooks

The raw body is verified before anything is parsed or written. A bad
signature is rejected with 400 and changes nothing.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
import logging

from showtime_booking.core.dependencies import get_payment_gateway, get_reconciler
from showtime_booking.core.metrics import webhook_signature_failures_total
from showtime_booking.schemas import WebhookAck
from showtime_booking.services import (
    BookingReconciler,
    PaymentGateway,
    PaymentGatewayError,
    PaymentNotification,
    SignatureInvalidError,
)
from showtime_booking.services.payment_gateway import from_minor_units

logger = logging.getLogger(__name__)

router = APIRouter()

PAYMENT_SUCCEEDED_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)


def parse_payment_notification(event: dict) -> Optional[PaymentNotification]:
    """
    Extract the booking and payment details from a checkout event.

    Returns None for events that don't mean "money received" for one of
    our bookings.
    """
    if event.get("type") not in PAYMENT_SUCCEEDED_EVENTS:
        return None

    session = event.get("data", {}).get("object", {}) or {}
    # Delayed payment methods complete unpaid and settle in a later event
    if session.get("payment_status") not in (None, "paid", "no_payment_required"):
        return None

    booking_id = (session.get("metadata") or {}).get("booking_id")
    if booking_id is None or not str(booking_id).isdigit():
        return None

    return PaymentNotification(
        booking_id=int(booking_id),
        amount_paid=from_minor_units(session.get("amount_total")),
        payment_intent_ref=session.get("payment_intent"),
        event_id=event.get("id"),
    )


@router.post("/webhooks/payments", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    reconciler: BookingReconciler = Depends(get_reconciler),
):
    """
    Receive payment events from the provider

    Returns 500 when a refund could not be issued so the provider
    redelivers the event.
    """
    payload = await request.body()

    if not stripe_signature:
        webhook_signature_failures_total.inc()
        logger.warning("⚠️ Webhook rejected: missing Stripe-Signature header")
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    try:
        event = gateway.verify_webhook(payload, stripe_signature)
    except SignatureInvalidError as e:
        webhook_signature_failures_total.inc()
        logger.warning(f"⚠️ Webhook rejected: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    notification = parse_payment_notification(event)
    if notification is None:
        logger.info(f"📭 Ignoring webhook event {event.get('type')} ({event.get('id')})")
        return WebhookAck(outcome="IGNORED")

    try:
        outcome = await reconciler.handle_payment_succeeded(notification)
    except PaymentGatewayError as e:
        logger.error(
            f"❌ Refund failed for booking {notification.booking_id}: {e}",
            extra={'booking_id': notification.booking_id}
        )
        raise HTTPException(status_code=500, detail="Refund failed, retry later")

    return WebhookAck(outcome=outcome.value)
