"""
Database configuration and async session management
"""
from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from showtime_booking.core.config import settings

# Create declarative base for models
Base = declarative_base()


def create_engine_for(database_url: str) -> AsyncEngine:
    """
    Build an async engine for the given URL.

    PostgreSQL (asyncpg) gets a bounded pool and a server-side statement
    timeout. SQLite (aiosqlite, used for tests and local runs) gets
    BEGIN IMMEDIATE transactions so concurrent writers queue on the
    database lock instead of failing on lock upgrade.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=settings.DEBUG,
            connect_args={"timeout": 30},
        )
        _configure_sqlite(engine)
        return engine

    connect_args = {}
    if "asyncpg" in database_url:
        connect_args["server_settings"] = {
            "statement_timeout": str(settings.DB_STATEMENT_TIMEOUT_MS),
        }

    return create_async_engine(
        database_url,
        echo=settings.DEBUG,  # Log SQL queries in debug mode
        future=True,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=connect_args,
    )


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,
    )


engine = create_engine_for(settings.DATABASE_URL)

AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI to provide database sessions.

    Usage:
        @router.get("/shows")
        async def list_shows(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Show))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = None):
    """
    Initialize database tables.
    Only for development - use migrations in production.
    """
    # Import all models to register them with Base
    from showtime_booking import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(bind: AsyncEngine = None):
    """
    Drop all database tables.
    WARNING: Use only in development/testing!
    """
    from showtime_booking import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
