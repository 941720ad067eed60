"""
Async PostgreSQL connection pool for the survey store.

The pool is created once at application startup and shared by the
repository layer. All PostgreSQL connections flow through this module.

Connection Pool Configuration:
- min_size: 2 (minimum idle connections kept in pool)
- max_size: 10 (maximum connections in pool)
- command_timeout: 60 seconds (query timeout)

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In the repository
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM survey")

    # At application shutdown
    await close_db()
"""

from typing import Optional

import asyncpg
from asyncpg import Pool

from survey_benchmark.core.config import get_settings


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


class DatabaseNotConfiguredError(RuntimeError):
    """Raised when a pool is requested but DATABASE_URL is not set."""


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        DatabaseNotConfiguredError: If DATABASE_URL is not configured.
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise DatabaseNotConfiguredError("DATABASE_URL is not configured")

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Idempotent; after closing, get_db_pool() creates a new pool.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
