"""
ScheduledExpiry model - durable hold-expiry timer

Written in the same transaction that claims the seats, so a hold can never
outlive a process crash. The expiry worker polls for due rows.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import Base


class ScheduledExpiry(Base):
    __tablename__ = "scheduled_expiries"

    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True)
    fire_at = Column(DateTime, nullable=False, index=True)
    fired_at = Column(DateTime, nullable=True, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ScheduledExpiry(booking_id={self.booking_id}, fire_at='{self.fire_at}', fired_at='{self.fired_at}')>"
