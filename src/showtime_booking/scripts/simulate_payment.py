"""
Complete a simulated checkout by posting a signed webhook

Usage:
    python -m showtime_booking.scripts.simulate_payment <booking_id> [amount_cents]
"""
import asyncio
import json
import sys
import uuid

import httpx

from showtime_booking.core.config import settings
from showtime_booking.services.payment_gateway import SimulatedPaymentGateway

API_URL = "http://localhost:8000/api/v1"


def build_checkout_completed(booking_id: int, amount_cents: int = None) -> dict:
    return {
        "id": f"evt_sim_{uuid.uuid4().hex}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_sim_{uuid.uuid4().hex}",
                "payment_status": "paid",
                "amount_total": amount_cents,
                "payment_intent": f"pi_sim_{uuid.uuid4().hex}",
                "metadata": {"booking_id": str(booking_id)},
            }
        },
    }


async def send_payment(booking_id: int, amount_cents: int = None):
    gateway = SimulatedPaymentGateway(webhook_secret=settings.STRIPE_WEBHOOK_SECRET)
    payload = json.dumps(build_checkout_completed(booking_id, amount_cents)).encode()

    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{API_URL}/webhooks/payments",
            content=payload,
            headers={
                "Content-Type": "application/json",
                "Stripe-Signature": gateway.sign(payload),
            },
        )
        print(f"Status: {response.status_code}")
        print(f"Response: {response.json()}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(send_payment(int(sys.argv[1]), int(sys.argv[2]) if len(sys.argv) > 2 else None))
