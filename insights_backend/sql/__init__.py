"""
SQL Query Module for the Link Insights backend.

Provides parameterized PostgreSQL statements for:
- Per-user click analytics aggregation (metrics_queries)
- The insights_cache table schema and state transitions (cache_queries)

Keeping statements here separates data access text from the service logic
that sequences them.

Submodules:
    metrics_queries: Read-only aggregation over links and analytics_daily,
                     scoped by user and date window.
    cache_queries: DDL plus the reads, conditional writes and deletes used
                   by the cache manager.

Example usage:
    from insights_backend.sql import (
        LINK_STATS_QUERY,
        get_top_breakdown_query,
        CLAIM_PENDING_CACHE,
    )

    # Top 10 countries for a window
    sql = get_top_breakdown_query('by_country')
    rows = await conn.fetch(sql, user_id, start, end, 10)
"""

# =============================================================================
# METRICS QUERIES - Aggregation over links / analytics_daily
# =============================================================================

from insights_backend.sql.metrics_queries import (
    BREAKDOWN_COLUMNS,
    LINK_STATS_QUERY,
    CLICKS_IN_PERIOD_QUERY,
    TOP_LINKS_QUERY,
    get_top_breakdown_query,
    DAILY_CLICKS_QUERY,
    CLICKS_BY_DAY_OF_WEEK_QUERY,
)

# =============================================================================
# CACHE QUERIES - insights_cache state machine
# =============================================================================

from insights_backend.sql.cache_queries import (
    INSIGHTS_CACHE_DDL,
    CACHE_COLUMNS,
    SELECT_LIVE_CACHE,
    SELECT_CACHE,
    SELECT_PENDING_CACHES,
    SELECT_STATUS_COUNTS,
    UPSERT_PENDING_CACHE,
    CLAIM_PENDING_CACHE,
    UPSERT_COMPLETED_CACHE,
    REFRESH_COMPLETED_CACHE,
    MARK_CACHE_ERROR,
    DELETE_USER_CACHES,
    DELETE_CACHE,
    DELETE_EXPIRED_CACHES,
)

# =============================================================================
# PUBLIC API - Explicit exports for clean API surface
# =============================================================================

__all__ = [
    # Metrics queries
    'BREAKDOWN_COLUMNS',
    'LINK_STATS_QUERY',
    'CLICKS_IN_PERIOD_QUERY',
    'TOP_LINKS_QUERY',
    'get_top_breakdown_query',
    'DAILY_CLICKS_QUERY',
    'CLICKS_BY_DAY_OF_WEEK_QUERY',
    # Cache queries
    'INSIGHTS_CACHE_DDL',
    'CACHE_COLUMNS',
    'SELECT_LIVE_CACHE',
    'SELECT_CACHE',
    'SELECT_PENDING_CACHES',
    'SELECT_STATUS_COUNTS',
    'UPSERT_PENDING_CACHE',
    'CLAIM_PENDING_CACHE',
    'UPSERT_COMPLETED_CACHE',
    'REFRESH_COMPLETED_CACHE',
    'MARK_CACHE_ERROR',
    'DELETE_USER_CACHES',
    'DELETE_CACHE',
    'DELETE_EXPIRED_CACHES',
]
