"""
Database session management.

WHY: Async database sessions are required for FastAPI's async/await pattern.
Using a context manager ensures proper connection cleanup and transaction management.
"""

from typing import Any, AsyncGenerator, Dict
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from rook.core.config import settings


def _engine_options() -> Dict[str, Any]:
    """
    Build engine keyword arguments for the configured backend.

    WHY: pool_size/max_overflow only apply to QueuePool; SQLite (local dev,
    tests) rejects them.
    """
    options: Dict[str, Any] = {
        "echo": settings.DEBUG,
        "pool_pre_ping": True,
    }
    if not settings.is_sqlite:
        options["pool_size"] = settings.DB_POOL_SIZE
        options["max_overflow"] = settings.DB_MAX_OVERFLOW
    return options


# WHY: pool_pre_ping recycles stale connections in long-running processes
engine = create_async_engine(settings.async_database_url, **_engine_options())

# WHY: expire_on_commit=False keeps ORM rows readable after commit, which the
# device action worker relies on between its state transitions.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    WHY: Each request gets its own session. Commit on success and rollback
    on any error, so a request's writes land together or not at all.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
