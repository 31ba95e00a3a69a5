"""
Seat model - CRITICAL for concurrency control

A row exists only while a seat is claimed. The unique constraint on
(show_id, seat_number) is what makes double-booking impossible, no
matter how many reservations race for the same seat.
"""
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, UniqueConstraint

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import Base


class SeatStatus(PyEnum):
    """Enum for seat status"""
    RESERVED = "RESERVED"
    BOOKED = "BOOKED"


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint('show_id', 'seat_number', name='uq_show_seat'),
    )

    id = Column(Integer, primary_key=True, index=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_number = Column(String(10), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(SeatStatus), nullable=False, default=SeatStatus.RESERVED)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return (f"<Seat(show_id={self.show_id}, seat='{self.seat_number}', "
                f"booking_id={self.booking_id}, status='{self.status.value}')>")
