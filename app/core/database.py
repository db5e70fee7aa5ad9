"""Async SQLAlchemy database setup."""

import logging

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
    pool_recycle=300,  # Recycle connections every 5 min to avoid server-side timeouts
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def _has_pending_state(session: AsyncSession) -> bool:
    return bool(session.new or session.dirty or session.deleted)


async def rollback_read_only_transaction(
    session: AsyncSession,
    *,
    context: str,
) -> None:
    """Close an open read-only transaction only when no ORM changes are pending.

    Ranking refreshes can spend up to the full provider fetch ceiling on
    network I/O; this keeps the session from sitting idle-in-transaction
    meanwhile. We commit (not rollback) because rollback expires ORM
    attributes that the caller still reads afterwards.
    """
    in_transaction = getattr(session, "in_transaction", None)
    if not callable(in_transaction):
        return
    if not in_transaction():
        return
    if _has_pending_state(session):
        return

    try:
        await session.commit()
    except (InterfaceError, OperationalError):
        logger.debug(
            "Ignoring transient commit failure for read-only transaction",
            extra={"context": context},
        )


async def _rollback_quietly(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except Exception:
        logger.warning("Rollback also failed (connection likely closed)")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except InterfaceError as e:
            if not session.in_transaction() and not _has_pending_state(session):
                # Connection closed after work already committed/rolled back.
                logger.debug("Session connection already closed during cleanup, ignoring")
                return
            logger.warning(f"Database interface error with active transaction: {repr(e)}, rolling back")
            await _rollback_quietly(session)
            raise
        except Exception as e:
            logger.warning(f"Database session error: {repr(e)}, rolling back")
            await _rollback_quietly(session)
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Get database session as context manager for non-DI usage."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.warning(f"Database session error: {repr(e)}, rolling back")
            await _rollback_quietly(session)
            raise


async def init_db() -> None:
    """Initialize database (create tables if needed)."""
    logger.info("Initializing database tables")
    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections")
    await engine.dispose()
