"""
Show model - a single screening with a rectangular seat grid
"""
import re
import string
from typing import Optional, Tuple
from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.orm import relationship

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import Base

# Row letter followed by a 1-based seat index, e.g. "A1", "C12"
SEAT_NUMBER_PATTERN = re.compile(r"^([A-Z])([1-9][0-9]*)$")
MAX_ROWS = len(string.ascii_uppercase)


def parse_seat_number(seat_number: str) -> Optional[Tuple[int, int]]:
    """Return (row_index, seat_index), both 0-based, or None if malformed"""
    match = SEAT_NUMBER_PATTERN.match(seat_number)
    if not match:
        return None
    return string.ascii_uppercase.index(match.group(1)), int(match.group(2)) - 1


class Show(Base):
    __tablename__ = "shows"

    id = Column(Integer, primary_key=True, index=True)
    movie_title = Column(String(500), nullable=False)
    rows = Column(Integer, nullable=False)
    seats_per_row = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    start_time = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    bookings = relationship("Booking", back_populates="show")

    def __repr__(self):
        return f"<Show(id={self.id}, movie='{self.movie_title}', start='{self.start_time}')>"

    @property
    def total_seats(self) -> int:
        return self.rows * self.seats_per_row

    def has_seat(self, seat_number: str) -> bool:
        """Check that a seat number lies inside this show's grid"""
        position = parse_seat_number(seat_number)
        if position is None:
            return False
        row, seat = position
        return row < self.rows and seat < self.seats_per_row
