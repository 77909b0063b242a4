"""Process-wide asyncpg pool shared by the PostgreSQL repositories."""
from __future__ import annotations

import asyncpg  # type: ignore[import-untyped]
import structlog

from webhook_delivery.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

_pool: asyncpg.Pool | None = None


async def get_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Return the shared pool, opening it on first use."""
    global _pool
    if _pool is None:
        settings = settings or get_settings()
        _pool = await asyncpg.create_pool(
            dsn=str(settings.database_url),
            min_size=1,
            max_size=settings.db_pool_size,
        )
        logger.info("db_pool opened", max_size=settings.db_pool_size)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    pool, _pool = _pool, None
    await pool.close()
    logger.info("db_pool closed")
