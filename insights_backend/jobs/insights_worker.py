"""
Insights Worker - batch job that turns pending cache entries into insights.

Invoked on an external schedule (cron, Kubernetes CronJob, ...). Each cycle:

1. Fetch up to batchSize pending entries, oldest first
2. Process them in groups of `concurrency`, each group awaited with
   asyncio.gather(return_exceptions=True) so one failing job never affects
   its siblings
3. Per entry:
   - Claim it (pending -> calculating); a lost claim is counted as skipped
   - Aggregate metrics under a timeout of timeoutMs
   - Hash the metrics; if the stored hash matches, only refresh the expiry
   - Otherwise generate insights and save the completed result
   - Any failure marks the entry as error (retried after the error TTL)

Idempotency:
- Running the same cycle twice does no extra work: claimed entries are no
  longer pending, and unchanged inputs take the cheap refresh path
- Multiple worker processes may run at once; the atomic claim guarantees a
  single computation per entry and attempt

Usage:
    python -m insights_backend.jobs.insights_worker
    python -m insights_backend.jobs.insights_worker --batch-size 100 --concurrency 10
    python -m insights_backend.jobs.insights_worker --status
    python -m insights_backend.jobs.insights_worker --clean-expired

Exit codes:
    0 - cycle ran (individual job failures are recorded on the entries)
    1 - cycle could not run (e.g. the pending scan failed)
"""

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from insights_backend.core.config import get_settings
from insights_backend.core.database import close_db, init_db
from insights_backend.models.enums import InsightPeriod, JobOutcome
from insights_backend.models.schemas import (
    AggregatedMetrics,
    InsightsResult,
    SystemStatus,
    UserProcessingResult,
    WorkerConfig,
    WorkerRunSummary,
)
from insights_backend.services.cache_manager import (
    InsightsCacheManager,
    get_cache_manager,
    get_ttl_hours,
)
from insights_backend.services.insights_generator import (
    calculate_inputs_hash,
    generate_insights,
)
from insights_backend.services.metrics_aggregator import aggregate_metrics_for_user


logger = logging.getLogger(__name__)

Aggregator = Callable[[str, InsightPeriod], Awaitable[AggregatedMetrics]]


class AggregationTimeoutError(Exception):
    """Raised when metrics aggregation exceeds the configured timeout."""


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# =============================================================================
# Per-Entry Processing
# =============================================================================


async def _aggregate_with_timeout(
    aggregator: Aggregator,
    user_id: str,
    period: InsightPeriod,
    timeout_ms: int
) -> AggregatedMetrics:
    try:
        return await asyncio.wait_for(aggregator(user_id, period), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise AggregationTimeoutError(f"Aggregation timed out after {timeout_ms}ms")


async def process_user_insights(
    user_id: str,
    period: InsightPeriod,
    config: WorkerConfig,
    cache_manager: InsightsCacheManager,
    aggregator: Optional[Aggregator] = None
) -> UserProcessingResult:
    """
    Claim, compute and persist insights for one pending cache entry.

    Never raises: every failure is recorded on the cache entry via
    mark_as_error and reported as a failed result.

    Args:
        user_id: Account owning the entry.
        period: Analysis period of the entry.
        config: Worker configuration (timeout and rule thresholds).
        cache_manager: Cache manager scoped to the current version.
        aggregator: Metrics source, defaults to aggregate_metrics_for_user.

    Returns:
        UserProcessingResult with outcome completed, unchanged, skipped or failed.
    """
    aggregator = aggregator or aggregate_metrics_for_user
    period = InsightPeriod(period)
    start = time.monotonic()

    try:
        claimed = await cache_manager.mark_as_calculating(user_id, period)
        if not claimed:
            logger.info(f"Insights for user {user_id} ({period.value}) already claimed, skipping")
            return UserProcessingResult(
                userId=user_id,
                period=period,
                outcome=JobOutcome.SKIPPED,
                durationMs=_elapsed_ms(start),
            )

        metrics = await _aggregate_with_timeout(aggregator, user_id, period, config.timeoutMs)
        inputs_hash = calculate_inputs_hash(metrics)

        if not await cache_manager.should_recalculate(user_id, period, inputs_hash):
            await cache_manager.refresh_completed(
                user_id, period, start_date=metrics.startDate, end_date=metrics.endDate
            )
            logger.info(f"Inputs unchanged for user {user_id} ({period.value}), expiry refreshed")
            return UserProcessingResult(
                userId=user_id,
                period=period,
                outcome=JobOutcome.UNCHANGED,
                durationMs=_elapsed_ms(start),
            )

        insights = generate_insights(metrics, config)
        calculated_at = datetime.now(timezone.utc)

        await cache_manager.save_insights_result(InsightsResult(
            userId=user_id,
            period=period,
            version=cache_manager.version,
            inputsHash=inputs_hash,
            totalLinks=metrics.totalLinks,
            totalClicks=metrics.totalClicks,
            startDate=metrics.startDate,
            endDate=metrics.endDate,
            insights=insights,
            calculatedAt=calculated_at,
            expiresAt=calculated_at + timedelta(hours=get_ttl_hours(period)),
        ))

        return UserProcessingResult(
            userId=user_id,
            period=period,
            outcome=JobOutcome.COMPLETED,
            insightsGenerated=len(insights),
            durationMs=_elapsed_ms(start),
        )

    except Exception as e:
        message = str(e) or type(e).__name__
        logger.error(f"Insights computation failed for user {user_id} ({period.value}): {message}")

        try:
            await cache_manager.mark_as_error(user_id, period, message)
        except Exception:
            logger.exception(f"Could not mark insights cache as error for user {user_id} ({period.value})")

        return UserProcessingResult(
            userId=user_id,
            period=period,
            outcome=JobOutcome.FAILED,
            durationMs=_elapsed_ms(start),
            error=message,
        )


# =============================================================================
# Worker Cycle
# =============================================================================


async def run_insights_worker(
    config: Optional[WorkerConfig] = None,
    cache_manager: Optional[InsightsCacheManager] = None,
    aggregator: Optional[Aggregator] = None
) -> WorkerRunSummary:
    """
    Run one worker cycle over the pending queue.

    Args:
        config: Worker configuration, defaults to WorkerConfig.from_settings().
        cache_manager: Defaults to get_cache_manager().
        aggregator: Metrics source, defaults to aggregate_metrics_for_user.

    Returns:
        WorkerRunSummary with processed/successful/failed/skipped counters and
        one result per fetched entry.

    Raises:
        Exception: Only if the initial pending scan fails.

    Example:
        >>> summary = await run_insights_worker()
        >>> summary.processed, summary.successful, summary.failed
        (12, 11, 1)
    """
    config = config or WorkerConfig.from_settings(get_settings())
    cache_manager = cache_manager or get_cache_manager()
    start = time.monotonic()

    pending = await cache_manager.find_pending_caches(config.batchSize)
    if not pending:
        logger.info("No pending insights to process")
        return WorkerRunSummary(durationMs=_elapsed_ms(start))

    logger.info(
        f"Processing {len(pending)} pending insights "
        f"(concurrency={config.concurrency}, timeout={config.timeoutMs}ms)"
    )

    results: List[UserProcessingResult] = []

    for i in range(0, len(pending), config.concurrency):
        group = pending[i:i + config.concurrency]
        outcomes = await asyncio.gather(
            *[
                process_user_insights(entry.userId, entry.period, config, cache_manager, aggregator)
                for entry in group
            ],
            return_exceptions=True
        )

        for entry, outcome in zip(group, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected error processing user {entry.userId}: {outcome}")
                outcome = UserProcessingResult(
                    userId=entry.userId,
                    period=entry.period,
                    outcome=JobOutcome.FAILED,
                    error=str(outcome) or type(outcome).__name__,
                )
            results.append(outcome)

    successful = sum(
        1 for r in results if r.outcome in (JobOutcome.COMPLETED, JobOutcome.UNCHANGED)
    )
    failed = sum(1 for r in results if r.outcome == JobOutcome.FAILED)
    skipped = sum(1 for r in results if r.outcome == JobOutcome.SKIPPED)

    summary = WorkerRunSummary(
        processed=len(pending),
        successful=successful,
        failed=failed,
        skipped=skipped,
        durationMs=_elapsed_ms(start),
        results=results,
    )

    logger.info(
        f"Insights cycle complete: {summary.processed} processed, {summary.successful} successful, "
        f"{summary.failed} failed, {summary.skipped} skipped in {summary.durationMs}ms"
    )

    return summary


# =============================================================================
# Operations
# =============================================================================


async def get_system_status(cache_manager: Optional[InsightsCacheManager] = None) -> SystemStatus:
    """Cache histogram plus the active version, for monitoring."""
    cache_manager = cache_manager or get_cache_manager()
    stats = await cache_manager.get_cache_stats()
    return SystemStatus(
        timestamp=datetime.now(timezone.utc),
        cache=stats,
        version=cache_manager.version,
    )


async def clean_expired_caches(cache_manager: Optional[InsightsCacheManager] = None) -> int:
    """Delete expired cache entries; returns the number removed."""
    cache_manager = cache_manager or get_cache_manager()
    return await cache_manager.clean_expired_caches()


# =============================================================================
# CLI Entry Point
# =============================================================================


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Insights Worker - computes pending link insights"
    )
    parser.add_argument("--batch-size", type=_positive_int, help="Pending entries per cycle")
    parser.add_argument("--concurrency", type=_positive_int, help="Entries processed at once")
    parser.add_argument("--timeout-ms", type=_positive_int, help="Aggregation timeout per entry")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print cache status and exit"
    )
    parser.add_argument(
        "--clean-expired",
        action="store_true",
        help="Delete expired cache entries and exit"
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    config = WorkerConfig.from_settings(settings)

    overrides = {
        'batchSize': args.batch_size,
        'concurrency': args.concurrency,
        'timeoutMs': args.timeout_ms,
    }
    config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    await init_db()
    try:
        if args.status:
            status = await get_system_status()
            print(status.model_dump_json(indent=2))
        elif args.clean_expired:
            deleted = await clean_expired_caches()
            logger.info(f"Deleted {deleted} expired cache entries")
        else:
            await run_insights_worker(config=config)
        return 0
    except Exception as e:
        logger.exception(f"Insights worker cycle failed: {e}")
        return 1
    finally:
        await close_db()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the insights worker job."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
