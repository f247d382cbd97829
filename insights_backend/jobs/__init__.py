"""
Background Jobs for the Link Insights backend.

This module provides the scheduled insights worker (insights_worker.py), which
drains the pending queue of the insights cache.

Idempotency Guarantees:
-----------------------
- Each pending entry is claimed with an atomic conditional update, so
  concurrent worker processes never compute the same entry twice per attempt.
- Entries whose inputs hash is unchanged only get their expiry refreshed.
- Failures are recorded on the entry (status=error) and retried once the
  error TTL (ERROR_RETRY_TTL_HOURS, default 1h) passes.

Environment Requirements:
-------------------------
- DATABASE_URL: PostgreSQL connection string
- WORKER_BATCH_SIZE, WORKER_CONCURRENCY, WORKER_TIMEOUT_MS: cycle tuning
- INSIGHTS_VERSION: cache version the worker operates on

Usage Examples:
---------------
    from insights_backend.jobs import run_insights_worker, get_system_status

    summary = await run_insights_worker()
    status = await get_system_status()

From cron:

    python -m insights_backend.jobs.insights_worker
"""

# =============================================================================
# Insights Worker Exports
# =============================================================================

from insights_backend.jobs.insights_worker import (
    # Main job functions
    run_insights_worker,
    process_user_insights,
    # Operations
    get_system_status,
    clean_expired_caches,
    # Errors
    AggregationTimeoutError,
)

# =============================================================================
# Public API Declaration
# =============================================================================

__all__ = [
    'run_insights_worker',      # Run one cycle over the pending queue
    'process_user_insights',    # Claim and compute a single entry
    'get_system_status',        # Cache histogram for monitoring
    'clean_expired_caches',     # Reap expired entries
    'AggregationTimeoutError',
]
