from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

# -----------------------------
# Async engine (FastAPI)
# -----------------------------
# Use CLEAN URL to avoid asyncpg errors with sslmode/channel_binding query params.
DATABASE_URL_ASYNC = settings.DATABASE_URL_ASYNC_CLEAN


def engine_options(url: str) -> Dict[str, Any]:
    """Pool tuning only applies to server databases; SQLite (tests, local) uses its own pool."""
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,
        "pool_pre_ping": True,  # detects dead connections before using them
        "pool_recycle": 300,    # recycle connections periodically (seconds)
    }


engine: AsyncEngine = create_async_engine(DATABASE_URL_ASYNC, **engine_options(DATABASE_URL_ASYNC))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides one AsyncSession per request.
    Uncommitted work is rolled back when the session closes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
