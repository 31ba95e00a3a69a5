"""
Booking model - one reservation attempt and its payment outcome
"""
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import Base


class BookingStatus(PyEnum):
    """Enum for booking status

    PENDING is the only non-terminal state. A booking leaves it exactly
    once, either to PAID or to EXPIRED.
    """
    PENDING = "PENDING"
    PAID = "PAID"
    EXPIRED = "EXPIRED"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_numbers = Column(JSON, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    lock_token = Column(String(64), nullable=True)  # owner of the advisory seat locks
    payment_reference = Column(String(255), nullable=True)  # checkout session id
    payment_url = Column(String(2048), nullable=True)
    payment_intent_ref = Column(String(255), nullable=True)  # charge to refund
    refunded_at = Column(DateTime, nullable=True)
    refund_reference = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    hold_expires_at = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)

    # Relationships
    show = relationship("Show", back_populates="bookings")

    def __repr__(self):
        return (f"<Booking(id={self.id}, user_id='{self.user_id}', show_id={self.show_id}, "
                f"status='{self.status.value}', amount={self.amount})>")

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING

    def time_remaining_seconds(self, now=None) -> int:
        """Get remaining hold time in seconds"""
        if self.status != BookingStatus.PENDING:
            return 0
        remaining = (self.hold_expires_at - (now or utcnow())).total_seconds()
        return max(0, int(remaining))
