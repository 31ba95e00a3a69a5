"""
Showtime Booking Service

Seat reservation and payment confirmation for cinema showtimes.
"""
__version__ = "1.0.0"
