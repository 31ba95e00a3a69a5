"""
Seed script to populate database with sample shows

Usage:
    python -m showtime_booking.scripts.seed_data
"""
import asyncio
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import select

from showtime_booking.core.clock import utcnow
from showtime_booking.core.database import AsyncSessionLocal, init_db
from showtime_booking.models import Show


async def create_sample_shows(db):
    """Create sample shows"""
    now = utcnow().replace(minute=0, second=0, microsecond=0)

    shows_data = [
        {
            "movie_title": "Dune: Part Two",
            "start_time": now + timedelta(days=1, hours=2),
            "rows": 10,
            "seats_per_row": 12,
            "unit_price": Decimal("12.50"),
        },
        {
            "movie_title": "Dune: Part Two",
            "start_time": now + timedelta(days=1, hours=6),
            "rows": 10,
            "seats_per_row": 12,
            "unit_price": Decimal("14.00"),
        },
        {
            "movie_title": "Oppenheimer",
            "start_time": now + timedelta(days=2, hours=4),
            "rows": 8,
            "seats_per_row": 10,
            "unit_price": Decimal("11.00"),
        },
        {
            "movie_title": "Spirited Away",
            "start_time": now + timedelta(days=3, hours=1),
            "rows": 5,
            "seats_per_row": 8,
            "unit_price": Decimal("9.00"),
        },
    ]

    shows = []
    for show_data in shows_data:
        # Check if show already exists
        result = await db.execute(
            select(Show).where(
                Show.movie_title == show_data["movie_title"],
                Show.start_time == show_data["start_time"]
            )
        )
        existing_show = result.scalar_one_or_none()

        if existing_show:
            print(f"Show '{show_data['movie_title']}' at {show_data['start_time']} already exists, skipping...")
            shows.append(existing_show)
            continue

        show = Show(**show_data, currency="usd")
        db.add(show)
        shows.append(show)
        print(f"Created show: {show.movie_title} at {show.start_time} ({show.total_seats} seats)")

    await db.commit()
    return shows


async def seed_database():
    """Main seeding function"""
    print("Starting database seeding...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            print("\n=== Creating Shows ===")
            shows = await create_sample_shows(db)

            print("\n=== Seeding Complete! ===")
            for show in shows:
                print(f"  - #{show.id} {show.movie_title} @ {show.start_time}")

        except Exception as e:
            print(f"Error during seeding: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(seed_database())
