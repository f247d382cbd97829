"""
Per-user click metrics aggregation for the insights pipeline.

This module projects the raw per-day analytics of one account into the flat
AggregatedMetrics snapshot consumed by the insight generator. It performs reads
only; links and analytics_daily are owned by other parts of the system.

Windows:
- Current window: the N calendar days ending today (UTC), both ends inclusive
- Previous window: the N days immediately before the current start, so the
  two windows never overlap
- N comes from PERIOD_DAYS (7d=7, 30d=30, 90d=90, yearly=365)

Reads (independent, issued concurrently, each on its own pooled connection):
- Link stats (total and active links)
- Clicks in the current and previous windows
- Top 10 links, top 10 countries, top 10 sources, top 5 devices
- Daily click series and day-of-week histogram (Sunday=0, zero-filled)

An account with no links yields zeros and empty lists rather than an error.

Key Functions:
- get_period_dates: Compute current and previous windows for a period
- aggregate_metrics_for_user: Build AggregatedMetrics for (user, period)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from asyncpg import Pool

from insights_backend.core.database import get_db_pool
from insights_backend.models.enums import InsightPeriod, PERIOD_DAYS
from insights_backend.models.schemas import (
    AggregatedMetrics,
    CountryClicks,
    DailyClicks,
    DayOfWeekClicks,
    DeviceClicks,
    LinkClicks,
    PreviousPeriodMetrics,
    SourceClicks,
)
from insights_backend.sql.metrics_queries import (
    BREAKDOWN_COLUMNS,
    CLICKS_BY_DAY_OF_WEEK_QUERY,
    CLICKS_IN_PERIOD_QUERY,
    DAILY_CLICKS_QUERY,
    LINK_STATS_QUERY,
    TOP_LINKS_QUERY,
    get_top_breakdown_query,
)


logger = logging.getLogger(__name__)


# Caps applied to the ranked lists in AggregatedMetrics
TOP_LINKS_LIMIT = 10
TOP_COUNTRIES_LIMIT = 10
TOP_SOURCES_LIMIT = 10
TOP_DEVICES_LIMIT = 5


# =============================================================================
# Period Windows
# =============================================================================


@dataclass(frozen=True)
class PeriodWindow:
    """
    Current and previous date windows for one analysis period.

    Attributes:
        start_date: First day of the current window (inclusive).
        end_date: Last day of the current window (inclusive, today).
        previous_start_date: First day of the previous window (inclusive).
        previous_end_date: Last day of the previous window (inclusive), the
            day before start_date.
    """
    start_date: date
    end_date: date
    previous_start_date: date
    previous_end_date: date


def get_period_dates(period: InsightPeriod, today: Optional[date] = None) -> PeriodWindow:
    """
    Compute the current and previous windows for a period.

    Args:
        period: Analysis period (enum or its string value).
        today: Reference day, defaults to the current UTC date.

    Returns:
        PeriodWindow with two equal-length, adjacent, non-overlapping windows.

    Raises:
        ValueError: If period is not a known InsightPeriod value.

    Example:
        >>> w = get_period_dates(InsightPeriod.SEVEN_DAYS, today=date(2026, 10, 19))
        >>> w.start_date, w.end_date
        (datetime.date(2026, 10, 13), datetime.date(2026, 10, 19))
        >>> w.previous_start_date, w.previous_end_date
        (datetime.date(2026, 10, 6), datetime.date(2026, 10, 12))
    """
    days = PERIOD_DAYS[InsightPeriod(period)]
    end_date = today or datetime.now(timezone.utc).date()
    start_date = end_date - timedelta(days=days - 1)
    previous_end_date = start_date - timedelta(days=1)
    previous_start_date = previous_end_date - timedelta(days=days - 1)

    return PeriodWindow(
        start_date=start_date,
        end_date=end_date,
        previous_start_date=previous_start_date,
        previous_end_date=previous_end_date,
    )


# =============================================================================
# Individual Reads
# =============================================================================


async def _fetch_link_stats(pool: Pool, user_id: str) -> Tuple[int, int]:
    async with pool.acquire() as conn:
        row = await conn.fetchrow(LINK_STATS_QUERY, user_id)

    if row is None:
        return 0, 0
    return int(row['total_links'] or 0), int(row['active_links'] or 0)


async def _fetch_clicks_in_period(
    pool: Pool,
    user_id: str,
    start_date: date,
    end_date: date
) -> int:
    async with pool.acquire() as conn:
        value = await conn.fetchval(CLICKS_IN_PERIOD_QUERY, user_id, start_date, end_date)
    return int(value or 0)


async def _fetch_top_links(
    pool: Pool,
    user_id: str,
    start_date: date,
    end_date: date
) -> List[LinkClicks]:
    async with pool.acquire() as conn:
        rows = await conn.fetch(TOP_LINKS_QUERY, user_id, start_date, end_date, TOP_LINKS_LIMIT)

    return [
        LinkClicks(linkId=str(row['link_id']), slug=row['slug'], clicks=int(row['clicks']))
        for row in rows
    ]


async def _fetch_breakdown(
    pool: Pool,
    user_id: str,
    start_date: date,
    end_date: date,
    column: str,
    limit: int
) -> List[Tuple[str, int]]:
    """Fetch (key, clicks) pairs of one JSONB count map, ranked by clicks."""
    query = get_top_breakdown_query(column)
    key = BREAKDOWN_COLUMNS[column]

    async with pool.acquire() as conn:
        rows = await conn.fetch(query, user_id, start_date, end_date, limit)

    return [(str(row[key]), int(row['clicks'])) for row in rows]


async def _fetch_daily_clicks(
    pool: Pool,
    user_id: str,
    start_date: date,
    end_date: date
) -> List[DailyClicks]:
    async with pool.acquire() as conn:
        rows = await conn.fetch(DAILY_CLICKS_QUERY, user_id, start_date, end_date)

    return [
        DailyClicks(date=row['date'].isoformat(), clicks=int(row['clicks']))
        for row in rows
    ]


async def _fetch_clicks_by_day_of_week(
    pool: Pool,
    user_id: str,
    start_date: date,
    end_date: date
) -> List[DayOfWeekClicks]:
    async with pool.acquire() as conn:
        rows = await conn.fetch(CLICKS_BY_DAY_OF_WEEK_QUERY, user_id, start_date, end_date)

    counts = {int(row['day']): int(row['clicks']) for row in rows}
    return [DayOfWeekClicks(day=day, clicks=counts.get(day, 0)) for day in range(7)]


# =============================================================================
# Aggregation
# =============================================================================


async def aggregate_metrics_for_user(
    user_id: str,
    period: InsightPeriod,
    pool: Optional[Pool] = None,
    today: Optional[date] = None
) -> AggregatedMetrics:
    """
    Aggregate one account's click analytics for a period.

    All nine reads are independent and run concurrently. The previous period
    reuses the current link count, since link history is not tracked.

    Args:
        user_id: Account owning the links.
        period: Analysis period.
        pool: asyncpg pool; defaults to the application pool.
        today: Reference day for the windows, defaults to the current UTC date.

    Returns:
        AggregatedMetrics with sorted, capped top lists and a 7-bucket
        day-of-week histogram.

    Raises:
        ValueError: If period is invalid.
        asyncpg.PostgresError: If any read fails; no partial result is returned.

    Example:
        >>> metrics = await aggregate_metrics_for_user("user_123", InsightPeriod.THIRTY_DAYS)
        >>> metrics.totalClicks, len(metrics.clicksByDayOfWeek)
        (1000, 7)
    """
    period = InsightPeriod(period)
    window = get_period_dates(period, today=today)

    if pool is None:
        pool = await get_db_pool()

    start, end = window.start_date, window.end_date

    (
        link_stats,
        total_clicks,
        previous_clicks,
        top_links,
        countries,
        sources,
        devices,
        daily_clicks,
        day_of_week,
    ) = await asyncio.gather(
        _fetch_link_stats(pool, user_id),
        _fetch_clicks_in_period(pool, user_id, start, end),
        _fetch_clicks_in_period(
            pool, user_id, window.previous_start_date, window.previous_end_date
        ),
        _fetch_top_links(pool, user_id, start, end),
        _fetch_breakdown(pool, user_id, start, end, 'by_country', TOP_COUNTRIES_LIMIT),
        _fetch_breakdown(pool, user_id, start, end, 'by_source', TOP_SOURCES_LIMIT),
        _fetch_breakdown(pool, user_id, start, end, 'by_device', TOP_DEVICES_LIMIT),
        _fetch_daily_clicks(pool, user_id, start, end),
        _fetch_clicks_by_day_of_week(pool, user_id, start, end),
    )

    total_links, active_links = link_stats

    logger.debug(
        f"Aggregated {period.value} metrics for user {user_id}: "
        f"{total_clicks} clicks across {total_links} links"
    )

    return AggregatedMetrics(
        userId=user_id,
        period=period,
        startDate=start.isoformat(),
        endDate=end.isoformat(),
        totalLinks=total_links,
        activeLinks=active_links,
        totalClicks=total_clicks,
        topLinksByClicks=top_links,
        topCountries=[CountryClicks(country=k, clicks=v) for k, v in countries],
        topSources=[SourceClicks(source=k, clicks=v) for k, v in sources],
        topDevices=[DeviceClicks(device=k, clicks=v) for k, v in devices],
        dailyClicks=daily_clicks,
        clicksByDayOfWeek=day_of_week,
        previousPeriod=PreviousPeriodMetrics(
            totalClicks=previous_clicks,
            totalLinks=total_links,
        ),
    )
