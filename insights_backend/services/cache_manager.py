"""
Insights cache state machine backed by the insights_cache table.

InsightsCacheManager is the only writer of insights_cache. Each row is keyed by
(user_id, period, version) and moves through:

    (none) --get_or_create_cache--> pending
    pending --mark_as_calculating--> calculating      (atomic claim)
    calculating --save_insights_result / refresh_completed--> completed
    calculating --mark_as_error--> error               (short retry TTL)
    any, once expires_at has passed --get_or_create_cache--> pending

Race safety:
- The claim is a single conditional UPDATE matching status='pending'; the
  affected row count tells the caller whether it won.
- Creation is an INSERT ... ON CONFLICT whose update branch only fires on an
  expired row, so two concurrent creators never clobber a live entry. The
  loser re-reads the winner's row.

TTLs (hours): 7d=4, 30d=12, 90d=24, yearly=48; error entries live 1 hour by
default so failures are retried on the next request after that.

Usage:
    manager = get_cache_manager()
    entry, created = await manager.get_or_create_cache("user_123", InsightPeriod.THIRTY_DAYS)
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from asyncpg import Pool

from insights_backend.core.config import get_settings
from insights_backend.core.database import get_db_pool, parse_affected_rows
from insights_backend.models.enums import InsightPeriod, InsightStatus
from insights_backend.models.schemas import CacheEntry, CacheStats, InsightsResult
from insights_backend.sql.cache_queries import (
    CLAIM_PENDING_CACHE,
    DELETE_CACHE,
    DELETE_EXPIRED_CACHES,
    DELETE_USER_CACHES,
    MARK_CACHE_ERROR,
    REFRESH_COMPLETED_CACHE,
    SELECT_CACHE,
    SELECT_LIVE_CACHE,
    SELECT_PENDING_CACHES,
    SELECT_STATUS_COUNTS,
    UPSERT_COMPLETED_CACHE,
    UPSERT_PENDING_CACHE,
)


logger = logging.getLogger(__name__)


# =============================================================================
# TTL Policy
# =============================================================================

TTL_HOURS = {
    InsightPeriod.SEVEN_DAYS: 4,
    InsightPeriod.THIRTY_DAYS: 12,
    InsightPeriod.NINETY_DAYS: 24,
    InsightPeriod.YEARLY: 48,
}

ERROR_TTL_HOURS = 1

CREATE_ATTEMPTS = 2


def get_ttl_hours(period: InsightPeriod) -> int:
    """
    Cache lifetime for a completed or pending entry of the given period.

    Raises:
        ValueError: If period is not a known InsightPeriod value.
    """
    return TTL_HOURS[InsightPeriod(period)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_entry(row: Any) -> CacheEntry:
    """Convert an insights_cache row (asyncpg Record or mapping) to CacheEntry."""
    insights = row['insights']
    if isinstance(insights, str):
        insights = json.loads(insights)

    start_date = row['start_date']
    end_date = row['end_date']

    return CacheEntry(
        userId=row['user_id'],
        period=row['period'],
        version=row['version'],
        status=row['status'],
        inputsHash=row['inputs_hash'] or '',
        insights=insights or [],
        totalLinks=int(row['total_links'] or 0),
        totalClicks=int(row['total_clicks'] or 0),
        startDate=start_date.isoformat() if hasattr(start_date, 'isoformat') else start_date,
        endDate=end_date.isoformat() if hasattr(end_date, 'isoformat') else end_date,
        error=row['error'],
        calculatedAt=row['calculated_at'],
        expiresAt=row['expires_at'],
        createdAt=row['created_at'],
        updatedAt=row['updated_at'],
    )


def _parse_iso_date(value: Optional[str]):
    return datetime.strptime(value, '%Y-%m-%d').date() if value else None


# =============================================================================
# Cache Manager
# =============================================================================


class InsightsCacheManager:
    """
    Persistence and state transitions for insights cache entries.

    Attributes:
        version: Schema/algorithm tag all reads and writes are scoped to.
            Bumping it makes every existing entry invisible, forcing a full
            recomputation regardless of hashes.
        error_ttl_hours: Lifetime of an entry marked as error.
    """

    def __init__(
        self,
        version: str,
        pool: Optional[Pool] = None,
        error_ttl_hours: int = ERROR_TTL_HOURS
    ):
        self.version = version
        self.error_ttl_hours = error_ttl_hours
        self._pool = pool

    async def _get_pool(self) -> Pool:
        if self._pool is None:
            return await get_db_pool()
        return self._pool

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_or_create_cache(
        self,
        user_id: str,
        period: InsightPeriod
    ) -> Tuple[CacheEntry, bool]:
        """
        Return the live entry for (user, period), creating a pending one if none.

        A live entry is pending, calculating or completed and not yet expired.
        Otherwise a pending entry is upserted with expires_at = now + TTL; the
        upsert only replaces a dead row. If nothing was written (a concurrent
        creator won, or an unexpired error entry exists) the current row is
        re-read; if that row was deleted in the meantime the upsert is tried
        once more.

        Args:
            user_id: Account requesting insights.
            period: Analysis period.

        Returns:
            (entry, created) where created is True only if this call wrote the
            pending entry.

        Raises:
            ValueError: If period is invalid.
            RuntimeError: If the row vanished between upsert and re-read twice.
        """
        period = InsightPeriod(period)
        now = _utcnow()
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                SELECT_LIVE_CACHE, user_id, period.value, self.version, now
            )
            if row is not None:
                return _row_to_entry(row), False

            expires_at = now + timedelta(hours=get_ttl_hours(period))

            # A concurrent invalidation can delete the row between the no-op
            # upsert and the re-read; the second pass recreates it.
            for _ in range(CREATE_ATTEMPTS):
                row = await conn.fetchrow(
                    UPSERT_PENDING_CACHE, user_id, period.value, self.version, expires_at, now
                )
                if row is not None:
                    logger.info(f"Created pending insights cache for user {user_id} ({period.value})")
                    return _row_to_entry(row), True

                row = await conn.fetchrow(SELECT_CACHE, user_id, period.value, self.version)
                if row is not None:
                    return _row_to_entry(row), False

        raise RuntimeError(
            f"Insights cache for user {user_id} ({period.value}) disappeared during creation"
        )

    async def get_cache(self, user_id: str, period: InsightPeriod) -> Optional[CacheEntry]:
        """Current-version entry for (user, period) in any state, or None."""
        period = InsightPeriod(period)
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(SELECT_CACHE, user_id, period.value, self.version)

        return _row_to_entry(row) if row is not None else None

    async def find_pending_caches(self, limit: int) -> List[CacheEntry]:
        """
        Non-expired pending entries of the current version, oldest first.

        Args:
            limit: Maximum number of entries to return.

        Returns:
            Entries ordered by created_at ascending (FIFO fairness).
        """
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(SELECT_PENDING_CACHES, self.version, _utcnow(), limit)

        return [_row_to_entry(row) for row in rows]

    async def should_recalculate(
        self,
        user_id: str,
        period: InsightPeriod,
        new_hash: str
    ) -> bool:
        """
        Decide whether insights must be regenerated for a new inputs hash.

        True if there is no entry, no prior hash, the hash differs, the entry
        has expired, or the entry is in error; False otherwise.
        """
        entry = await self.get_cache(user_id, period)

        if entry is None or not entry.inputsHash:
            return True
        if entry.inputsHash != new_hash:
            return True
        if entry.expiresAt <= _utcnow():
            return True
        if entry.status == InsightStatus.ERROR:
            return True

        return False

    async def get_cache_stats(self) -> CacheStats:
        """Count entries per status across all users and versions."""
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(SELECT_STATUS_COUNTS)

        counts = {row['status']: int(row['count']) for row in rows}
        return CacheStats(
            pending=counts.get(InsightStatus.PENDING.value, 0),
            calculating=counts.get(InsightStatus.CALCULATING.value, 0),
            completed=counts.get(InsightStatus.COMPLETED.value, 0),
            error=counts.get(InsightStatus.ERROR.value, 0),
        )

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    async def mark_as_calculating(self, user_id: str, period: InsightPeriod) -> bool:
        """
        Claim a pending entry for computation.

        Returns:
            True if this call moved the entry from pending to calculating,
            False if it was not pending (another worker already claimed it).
        """
        period = InsightPeriod(period)
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(
                CLAIM_PENDING_CACHE, user_id, period.value, self.version, _utcnow()
            )

        return parse_affected_rows(status) > 0

    async def save_insights_result(self, result: InsightsResult) -> bool:
        """
        Upsert the completed state for a freshly generated insight set.

        An existing row is only overwritten while it is still calculating.

        Returns:
            False if the entry was reset or recreated since it was claimed and
            the result was discarded.
        """
        period = InsightPeriod(result.period)
        insights = [signal.model_dump(exclude_none=True) for signal in result.insights]
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(
                UPSERT_COMPLETED_CACHE,
                result.userId,
                period.value,
                result.version,
                result.inputsHash,
                insights,
                result.totalLinks,
                result.totalClicks,
                _parse_iso_date(result.startDate),
                _parse_iso_date(result.endDate),
                result.calculatedAt,
                result.expiresAt,
                _utcnow(),
            )

        if parse_affected_rows(status) == 0:
            logger.info(
                f"Discarded stale insights for user {result.userId} ({period.value}): "
                f"entry is no longer calculating"
            )
            return False

        logger.info(
            f"Saved {len(insights)} insights for user {result.userId} ({period.value})"
        )
        return True

    async def refresh_completed(
        self,
        user_id: str,
        period: InsightPeriod,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> bool:
        """
        Mark a calculating entry completed again with a fresh TTL, keeping its insights.

        Used when the inputs hash is unchanged. The window dates are updated
        when given. Returns False if the entry was no longer calculating.
        """
        period = InsightPeriod(period)
        now = _utcnow()
        expires_at = now + timedelta(hours=get_ttl_hours(period))
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(
                REFRESH_COMPLETED_CACHE,
                user_id,
                period.value,
                self.version,
                expires_at,
                now,
                _parse_iso_date(start_date),
                _parse_iso_date(end_date),
            )

        return parse_affected_rows(status) > 0

    async def mark_as_error(self, user_id: str, period: InsightPeriod, message: str) -> bool:
        """
        Record a failed attempt on a calculating entry.

        The entry expires after error_ttl_hours. Returns False if the entry was
        no longer calculating and was left untouched.
        """
        period = InsightPeriod(period)
        now = _utcnow()
        expires_at = now + timedelta(hours=self.error_ttl_hours)
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(
                MARK_CACHE_ERROR, user_id, period.value, self.version, message, expires_at, now
            )

        if parse_affected_rows(status) == 0:
            logger.info(
                f"Insights cache for user {user_id} ({period.value}) no longer calculating, "
                f"error not recorded: {message}"
            )
            return False

        logger.warning(f"Insights cache for user {user_id} ({period.value}) marked as error: {message}")
        return True

    # -------------------------------------------------------------------------
    # Deletes
    # -------------------------------------------------------------------------

    async def invalidate_user_cache(self, user_id: str) -> int:
        """Delete every entry for the user across periods and versions."""
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(DELETE_USER_CACHES, user_id)

        deleted = parse_affected_rows(status)
        logger.info(f"Invalidated {deleted} insights cache entries for user {user_id}")
        return deleted

    async def invalidate_cache(self, user_id: str, period: InsightPeriod) -> int:
        """Delete the current-version entry for one period."""
        period = InsightPeriod(period)
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(DELETE_CACHE, user_id, period.value, self.version)

        return parse_affected_rows(status)

    async def clean_expired_caches(self) -> int:
        """Delete all entries whose expires_at has passed."""
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            status = await conn.execute(DELETE_EXPIRED_CACHES, _utcnow())

        deleted = parse_affected_rows(status)
        logger.info(f"Cleaned {deleted} expired insights cache entries")
        return deleted


def get_cache_manager(pool: Optional[Pool] = None) -> InsightsCacheManager:
    """Build a cache manager for the configured insights version."""
    settings = get_settings()
    return InsightsCacheManager(
        version=settings.insights_version,
        pool=pool,
        error_ttl_hours=settings.error_retry_ttl_hours,
    )
