"""
FastAPI application entry point
"""
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
import logging

from showtime_booking.core.config import settings
from showtime_booking.core.database import engine, init_db
from showtime_booking.core.dependencies import get_expiry_worker
from showtime_booking.core.logging_config import setup_logging
from showtime_booking.core.metrics import get_metrics
from showtime_booking.core.redis import redis_client
from showtime_booking.api import admin, bookings, internal, shows, webhooks
from showtime_booking.middleware.rate_limiter import limiter
from showtime_booking.middleware.tracing import TracingMiddleware
from slowapi.errors import RateLimitExceeded

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    logger.info("🚀 Starting up Showtime Booking Service...")
    logger.info(f"📊 Database: {engine.url.render_as_string(hide_password=True)}")

    # Test database connection
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise

    if settings.ENVIRONMENT == "development":
        await init_db()

    # Seat locks and notifications degrade gracefully without Redis
    logger.info("🔴 Connecting to Redis...")
    await redis_client.connect()

    worker = get_expiry_worker()
    if settings.EXPIRY_WORKER_ENABLED:
        logger.info("⏰ Starting expiry worker...")
        await worker.start()

    yield

    logger.info("🛑 Shutting down...")
    await worker.stop()
    await redis_client.close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat reservation and payment confirmation for cinema showtimes",
    lifespan=lifespan,
)

# Add rate limiter state
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded errors"""
    logger.warning(f"⚠️ Rate limit exceeded for {request.url.path}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
            "detail": str(exc.detail)
        },
        headers={
            "Retry-After": "60"
        }
    )


app.add_middleware(TracingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database_status = "healthy"
    except Exception as e:
        logger.error(f"❌ Health check database error: {e}")
        database_status = "unavailable"

    redis_status = "healthy" if await redis_client.ping() else "unavailable"

    return {
        "status": "healthy" if database_status == "healthy" else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": database_status,
        "redis": redis_status,
    }


@app.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics"""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(shows.router, prefix="/api/v1", tags=["Shows"])
app.include_router(bookings.router, prefix="/api/v1", tags=["Bookings"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])
app.include_router(internal.router, prefix="/api/v1", tags=["Internal"])
app.include_router(admin.router, prefix="/api/v1", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "showtime_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
