"""Async database engine for risk persistence.

Provides a singleton engine shared by every ``SqlRiskStore`` in the process.
"""

from __future__ import annotations

import os
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .models import risk_metadata

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Engine singleton
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None


def _make_async_url(postgres_url: str) -> str:
    """Ensure the URL uses the asyncpg driver prefix."""
    url = postgres_url
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def get_engine(postgres_url: str | None = None, ssl: bool | None = None) -> AsyncEngine:
    """Create or return the async engine singleton.

    Subsequent calls return the cached engine (the arguments are ignored
    after the first call).

    Args:
        postgres_url: PostgreSQL connection string.  If None on first call,
            reads from the POSTGRES_URL environment variable.
        ssl: Require SSL.  If None, reads the DB_SSL environment variable.

    Raises:
        RuntimeError: If the engine is not yet created and no URL is available
    """
    global _engine
    if _engine is not None:
        return _engine

    if postgres_url is None:
        postgres_url = os.getenv("POSTGRES_URL", "")

    if not postgres_url:
        raise RuntimeError(
            "Risk engine database not initialized and no POSTGRES_URL provided."
        )

    if ssl is None:
        ssl = os.environ.get("DB_SSL", "").lower() in ("1", "true", "yes")

    kwargs: dict[str, Any] = dict(
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    if ssl:
        kwargs["connect_args"] = {"ssl": "require"}

    _engine = create_async_engine(_make_async_url(postgres_url), **kwargs)
    logger.info("risk_engine_db_created")
    return _engine


async def init_db(postgres_url: str | None = None) -> None:
    """Create the risk tables if they do not already exist."""
    engine = get_engine(postgres_url)
    async with engine.begin() as conn:
        await conn.run_sync(risk_metadata.create_all)
    logger.info("risk_db_initialised")


async def close_engine() -> None:
    """Dispose of the connection pool."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("risk_engine_db_closed")
