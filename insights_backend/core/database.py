"""
Async PostgreSQL connection pool module.

This module provides an async PostgreSQL connection pool using asyncpg and serves
as the data access entry point for the Link Insights backend. Both the read-only
analytics queries (links, analytics_daily) and the insights_cache state machine
go through the pool managed here.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool (and schema) at application or worker startup
- ensure_schema(): Apply the insights_cache DDL (idempotent)
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool at shutdown
- parse_affected_rows(): Extract the row count from an asyncpg command status

Connection Pool Configuration:
- min_size: 2 (minimum idle connections kept in pool)
- max_size: 10 (maximum connections in pool)
- command_timeout: 60 seconds (query timeout)

Every connection gets JSON/JSONB codecs registered on creation, so JSONB columns
such as insights_cache.insights and analytics_daily.by_country are exchanged as
plain Python lists and dicts.

Usage:
    # At startup (FastAPI lifespan or worker entry point)
    await init_db()

    # In services
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM links WHERE user_id = $1", user_id)

    # At shutdown
    await close_db()
"""

import json
from typing import Optional

import asyncpg
from asyncpg import Connection, Pool

from insights_backend.core.config import get_settings
from insights_backend.sql.cache_queries import INSIGHTS_CACHE_DDL


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


async def _init_connection(conn: Connection) -> None:
    """Register JSON codecs so json/jsonb values decode to Python objects."""
    for type_name in ('json', 'jsonb'):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema='pg_catalog',
        )


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Creates an asyncpg connection pool for DATABASE_URL and applies the
    insights_cache schema. If the pool is already initialized the existing pool
    is returned (idempotent).

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
            init=_init_connection,
        )
        try:
            await ensure_schema(pool)
        except Exception:
            await pool.close()
            raise
        _pool = pool

    return _pool


async def ensure_schema(pool: Pool) -> None:
    """
    Create the insights_cache table and its indexes if they do not exist.

    The UNIQUE (user_id, period, version) constraint is the conflict target of
    every cache upsert, so this must run before the cache manager is used.
    """
    async with pool.acquire() as conn:
        await conn.execute(INSIGHTS_CACHE_DDL)


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Lazy initialization lets services be written without worrying about
    startup order. Prefer calling init_db() explicitly at startup so the
    first request does not pay the connection cost.

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

    Waits for acquired connections to be released before closing. Idempotent;
    after closing, the next get_db_pool() call creates a fresh pool.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Command Status Helpers
# =============================================================================

def parse_affected_rows(status: Optional[str]) -> int:
    """
    Extract the affected row count from an asyncpg command status string.

    asyncpg's execute() returns tags such as 'UPDATE 1', 'DELETE 3' or
    'INSERT 0 1'; the row count is always the last token.

    Args:
        status: The command status string returned by Connection.execute().

    Returns:
        int: Number of affected rows, or 0 when the status is empty or malformed.

    Example:
        >>> parse_affected_rows('UPDATE 1')
        1
        >>> parse_affected_rows('DELETE 0')
        0
    """
    if not status:
        return 0
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0
