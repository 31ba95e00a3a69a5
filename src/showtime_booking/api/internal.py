"""
Internal endpoints for operators and external schedulers
"""
from fastapi import APIRouter, Depends

from showtime_booking.core.auth import verify_operator_key
from showtime_booking.core.dependencies import get_reconciler
from showtime_booking.services import BookingReconciler

router = APIRouter(dependencies=[Depends(verify_operator_key)])


@router.post("/internal/expiry/{booking_id}")
async def trigger_expiry(
    booking_id: int,
    reconciler: BookingReconciler = Depends(get_reconciler),
):
    """
    Fire the expiry for one booking now

    Only a hold that has run out is expired; an earlier call reports
    NOT_DUE and changes nothing. A booking that is already PAID or
    EXPIRED is left alone.
    """
    outcome = await reconciler.handle_expiry(booking_id)
    return {"booking_id": booking_id, "outcome": outcome.value}
