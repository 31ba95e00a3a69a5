"""
Concurrency check against a running server: many users, same seats

Usage:
    python -m showtime_booking.scripts.double_booking_check [num_users]

Expected: exactly one 201, every other request 409.
"""
import asyncio
import logging
import sys
import time
from collections import Counter
from typing import Dict, List

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_URL = "http://localhost:8000/api/v1"
SHOW_ID = 1
TARGET_SEATS = ["A1", "A2", "A3"]  # Same seats for everyone


async def attempt_reservation(client: httpx.AsyncClient, user_id: int) -> Dict:
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_URL}/shows/{SHOW_ID}/reservations",
            params={"user_id": f"user-{user_id}"},
            json={"seat_numbers": TARGET_SEATS},
        )
        return {
            "user_id": user_id,
            "status_code": response.status_code,
            "success": response.status_code == 201,
            "duration_ms": (time.time() - start_time) * 1000,
        }
    except httpx.HTTPError as e:
        return {
            "user_id": user_id,
            "status_code": 0,
            "success": False,
            "duration_ms": (time.time() - start_time) * 1000,
            "error": str(e),
        }


def analyze_results(results: List[Dict], total_duration: float) -> bool:
    successes = [r for r in results if r["success"]]
    status_codes = Counter(r["status_code"] for r in results)

    logger.info("=" * 60)
    logger.info("📊 RESULTS")
    logger.info(f"Total requests: {len(results)} in {total_duration:.2f}s")
    for code, count in sorted(status_codes.items()):
        logger.info(f"  {code}: {count}")
    logger.info(f"Average latency: {sum(r['duration_ms'] for r in results) / len(results):.2f}ms")

    if len(successes) == 1:
        logger.info(f"✅ PASS: exactly one reservation succeeded (user {successes[0]['user_id']})")
        return True
    if not successes:
        logger.error("❌ FAIL: no reservation succeeded")
    else:
        logger.error(f"❌ FAIL: {len(successes)} reservations succeeded (DOUBLE BOOKING!)")
    return False


async def run(num_users: int) -> bool:
    logger.info(f"🚀 {num_users} users racing for {TARGET_SEATS} on show {SHOW_ID}")
    limits = httpx.Limits(max_connections=50)
    async with httpx.AsyncClient(limits=limits, timeout=30) as client:
        start_time = time.time()
        results = await asyncio.gather(*[attempt_reservation(client, i) for i in range(1, num_users + 1)])
        total_duration = time.time() - start_time
    return analyze_results(results, total_duration)


if __name__ == "__main__":
    users = int(sys.argv[1]) if len(sys.argv) > 1 else 100
    sys.exit(0 if asyncio.run(run(users)) else 1)
