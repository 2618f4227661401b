"""
Database configuration - SQLAlchemy 2.0 Async
Project: Order Ledger

Engine, session factory and the FastAPI session dependency.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from orderledger.core.config import settings

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Async engine
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)


# ------------------------------------------------------------
# Session factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Example:
        @router.get("/orders")
        async def list_orders(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Check that the database is reachable."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Database connection error: %s", e)
        raise


async def create_tables(bind: AsyncEngine = engine, drop_first: bool = False) -> None:
    """
    Create every table registered on the declarative Base.

    Args:
        bind: Engine to run DDL on (tests pass an in-memory engine)
        drop_first: Drop all tables before creating them
    """
    from orderledger.models import Base

    async with bind.begin() as conn:
        if drop_first:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created (drop_first=%s)", drop_first)


async def close_db() -> None:
    """Dispose of the pool on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
