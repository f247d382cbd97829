"""
Core infrastructure package for the Link Insights backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg

Re-exports the most used components so callers can write:

    from insights_backend.core import get_settings, get_db_pool

FastAPI dependencies live in insights_backend.core.dependencies and are not
re-exported here, since they depend on the services layer.

Usage Examples:
    # Database pool lifecycle (FastAPI lifespan or worker entry point)
    from insights_backend.core import init_db, close_db

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db()
        yield
        await close_db()
"""

# =============================================================================
# Re-exports from insights_backend.core.config
# =============================================================================
from insights_backend.core.config import Settings, get_settings

# =============================================================================
# Re-exports from insights_backend.core.database
# =============================================================================
from insights_backend.core.database import (
    init_db,
    close_db,
    get_db_pool,
    ensure_schema,
    parse_affected_rows,
)


__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    'ensure_schema',
    'parse_affected_rows',
]
