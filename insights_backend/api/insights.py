"""
FastAPI router for the link insights polling contract.

Endpoints:
- GET    /insights?period=30d[&forceRefresh=true]  Cached insights or "in progress"
- DELETE /insights?period=30d                       Invalidate one period
- DELETE /insights/all                              Invalidate every period/version
- GET    /insights/system-status                    Cache histogram and version
- POST   /insights/maintenance/clean-expired        Reap expired entries

Polling contract:
    The first request for a (user, period) creates a pending cache entry and
    returns immediately; the worker computes it out of band. Clients poll
    until the status is completed or error, waiting estimatedWaitTime seconds
    between attempts.

The caller's account id comes from the X-User-Id header set by the gateway.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from insights_backend.core.dependencies import CacheManagerDep, CurrentUserDep
from insights_backend.jobs.insights_worker import get_system_status as build_system_status
from insights_backend.models import (
    CacheEntry,
    InsightPeriod,
    InsightsData,
    InsightsResponse,
    InsightStatus,
    InvalidationResponse,
    SystemStatus,
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router with prefix and tags for OpenAPI documentation
router = APIRouter(prefix="/insights", tags=["insights"])


# Seconds a client should wait before polling again
CALCULATING_WAIT_SECONDS = 10
PENDING_CREATED_WAIT_SECONDS = 30
PENDING_EXISTING_WAIT_SECONDS = 15

VALID_PERIODS = ", ".join(p.value for p in InsightPeriod)


# =============================================================================
# Helper Functions
# =============================================================================


def _parse_period(period: Optional[str]) -> InsightPeriod:
    """
    Validate the period query parameter.

    Raises:
        HTTPException 400: If period is missing or not a known value.
    """
    try:
        return InsightPeriod(period)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid period. Use: {VALID_PERIODS}",
        )


def build_insights_response(entry: CacheEntry, created: bool) -> InsightsResponse:
    """
    Map a cache entry to the polling response for its status.

    Args:
        entry: Current cache entry for (user, period).
        created: True if the entry was created by this request.

    Returns:
        InsightsResponse:
        - completed: data with insights, totals, hash and timestamps
        - calculating: estimatedWaitTime 10
        - pending: estimatedWaitTime 30 when just created, else 15
        - error: the stored error message
    """
    if entry.status == InsightStatus.COMPLETED:
        return InsightsResponse(
            status=InsightStatus.COMPLETED,
            data=InsightsData(
                userId=entry.userId,
                period=entry.period,
                version=entry.version,
                inputsHash=entry.inputsHash,
                totalLinks=entry.totalLinks,
                totalClicks=entry.totalClicks,
                startDate=entry.startDate,
                endDate=entry.endDate,
                insights=entry.insights,
                calculatedAt=entry.calculatedAt,
                expiresAt=entry.expiresAt,
            ),
        )

    if entry.status == InsightStatus.CALCULATING:
        return InsightsResponse(
            status=InsightStatus.CALCULATING,
            estimatedWaitTime=CALCULATING_WAIT_SECONDS,
            message="Insights are being calculated. Please wait...",
        )

    if entry.status == InsightStatus.PENDING:
        return InsightsResponse(
            status=InsightStatus.PENDING,
            estimatedWaitTime=(
                PENDING_CREATED_WAIT_SECONDS if created else PENDING_EXISTING_WAIT_SECONDS
            ),
            message="Insights calculation queued. Worker will process soon.",
        )

    return InsightsResponse(
        status=InsightStatus.ERROR,
        error=entry.error or "Unknown error occurred",
        message="Failed to generate insights. Please try again later.",
    )


# =============================================================================
# Insights Endpoints
# =============================================================================


@router.get("", response_model=InsightsResponse, response_model_exclude_none=True)
async def get_insights(
    user_id: CurrentUserDep,
    cache_manager: CacheManagerDep,
    period: Optional[str] = Query(None, description="7d, 30d, 90d or yearly"),
    forceRefresh: bool = Query(False, description="Discard the cached entry first"),
) -> InsightsResponse:
    """
    Return cached insights for a period, or queue their computation.

    Raises:
        HTTPException 400: If period is invalid
        HTTPException 500: If the cache cannot be read or written
    """
    insight_period = _parse_period(period)

    try:
        if forceRefresh:
            await cache_manager.invalidate_cache(user_id, insight_period)

        entry, created = await cache_manager.get_or_create_cache(user_id, insight_period)
        return build_insights_response(entry, created)

    except Exception as e:
        logger.error(f"Error fetching insights for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("", response_model=InvalidationResponse)
async def invalidate_insights(
    user_id: CurrentUserDep,
    cache_manager: CacheManagerDep,
    period: Optional[str] = Query(None, description="7d, 30d, 90d or yearly"),
) -> InvalidationResponse:
    """Invalidate the current-version cache entry for one period."""
    insight_period = _parse_period(period)

    try:
        deleted = await cache_manager.invalidate_cache(user_id, insight_period)
    except Exception as e:
        logger.error(f"Error invalidating insights for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"Invalidated {insight_period.value} insights for user {user_id} ({deleted} deleted)")
    return InvalidationResponse(
        message="Cache invalidated successfully",
        deletedCount=deleted,
    )


@router.delete("/all", response_model=InvalidationResponse)
async def invalidate_all_insights(
    user_id: CurrentUserDep,
    cache_manager: CacheManagerDep,
) -> InvalidationResponse:
    """Invalidate every cache entry of the caller, e.g. after links change."""
    try:
        deleted = await cache_manager.invalidate_user_cache(user_id)
    except Exception as e:
        logger.error(f"Error invalidating all insights for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    return InvalidationResponse(
        message="All insights caches invalidated",
        deletedCount=deleted,
    )


# =============================================================================
# Operations Endpoints
# =============================================================================


@router.get("/system-status", response_model=SystemStatus)
async def system_status(
    user_id: CurrentUserDep,
    cache_manager: CacheManagerDep,
) -> SystemStatus:
    """Histogram of cache entries by status plus the active version."""
    try:
        return await build_system_status(cache_manager)
    except Exception as e:
        logger.error(f"Error reading insights system status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/maintenance/clean-expired", response_model=InvalidationResponse)
async def clean_expired(
    user_id: CurrentUserDep,
    cache_manager: CacheManagerDep,
) -> InvalidationResponse:
    """Delete all expired cache entries."""
    try:
        deleted = await cache_manager.clean_expired_caches()
    except Exception as e:
        logger.error(f"Error cleaning expired insights caches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    return InvalidationResponse(
        message="Expired caches cleaned",
        deletedCount=deleted,
    )
