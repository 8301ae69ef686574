"""Database configuration and session management."""

import asyncio
import logging
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.exc import OperationalError, DBAPIError

from app.core.config import (
    DATABASE_URL,
    DB_CONNECTION_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_OVERFLOW,
    DB_POOL_RECYCLE,
)

logger = logging.getLogger(__name__)


def build_engine(url: str = DATABASE_URL) -> AsyncEngine:
    """Create an async engine with pooling suited to the driver in ``url``."""
    if url.startswith("sqlite"):
        # SQLite (aiosqlite) is used for local runs and tests; no pool tuning
        return create_async_engine(url, echo=False, future=True)

    return create_async_engine(
        url,
        echo=False,
        future=True,
        pool_pre_ping=True,  # Test connection before use
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_POOL_OVERFLOW,
        pool_recycle=DB_POOL_RECYCLE,
        connect_args={
            'timeout': DB_CONNECTION_TIMEOUT,
            'command_timeout': DB_CONNECTION_TIMEOUT,
        },
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create an async session factory bound to ``bind``."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Create async engine with connection pooling
engine = build_engine(DATABASE_URL)

# Create async session factory
async_session = build_session_factory(engine)

# Base for ORM models
Base = declarative_base()


async def wait_for_db(max_retries: int = 10, initial_delay: float = 2.0) -> bool:
    """Wait for database to be ready with exponential backoff.

    Args:
        max_retries: Maximum number of connection attempts
        initial_delay: Initial delay in seconds before first retry

    Returns:
        True if database is ready, False if all retries failed
    """
    delay = initial_delay

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"🔌 Database connection attempt {attempt}/{max_retries}...")

            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("✅ Database connection successful")
                return True

        except (OperationalError, DBAPIError, asyncio.TimeoutError, OSError) as e:
            if attempt == max_retries:
                logger.error(f"❌ Failed to connect to database after {max_retries} attempts: {e}")
                return False

            logger.warning(
                f"⚠️ Database connection failed (attempt {attempt}/{max_retries}). "
                f"Retrying in {delay}s... Error: {type(e).__name__}"
            )
            await asyncio.sleep(delay)
            # Exponential backoff: double the delay each time (capped at 30s)
            delay = min(delay * 2, 30.0)

    return False


async def init_db():
    """Initialize database tables using SQLAlchemy metadata.

    Creates the search log and click tracking tables if they don't exist.
    Includes retry logic for database availability.
    """
    # Import models so they register on Base.metadata
    from app.db import models  # noqa: F401

    db_ready = await wait_for_db(max_retries=10, initial_delay=2.0)
    if not db_ready:
        logger.error("❌ Database is not ready after retries. Skipping schema creation.")
        raise RuntimeError("Database is not available")

    try:
        logger.info("💾 Creating database tables from ORM models...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database schema ensured")
    except Exception as e:
        logger.error(f"❌ Failed to create database schema: {e}")
        raise


async def close_db():
    """Close database connection."""
    try:
        await engine.dispose()
        logger.info("✅ Database connection closed")
    except Exception as e:
        logger.error(f"⚠️ Error closing database connection: {e}")
