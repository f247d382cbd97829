"""
Pytest test module for the per-user metrics aggregator.

Test Coverage:
- Period window math (inclusive current window, adjacent previous window)
- Assembly of AggregatedMetrics from the individual query results
- Day-of-week zero filling and ISO date formatting
- Accounts with no links
- Default pool resolution and error propagation
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from insights_backend.models import InsightPeriod
from insights_backend.services.metrics_aggregator import (
    aggregate_metrics_for_user,
    get_period_dates,
)


pytestmark = pytest.mark.asyncio

TODAY = date(2026, 10, 19)


def _route_fetch(query, *args):
    """Return canned rows for each aggregation query."""
    if 'AS link_id' in query:
        return [
            {'link_id': 'link_a', 'slug': 'promo', 'clicks': 600},
            {'link_id': 'link_b', 'slug': 'blog', 'clicks': 400},
        ]
    if 'AS country' in query:
        return [{'country': 'US', 'clicks': 700}, {'country': 'DE', 'clicks': 300}]
    if 'AS source' in query:
        return [{'source': 'twitter', 'clicks': 1000}]
    if 'AS device' in query:
        return [{'device': 'mobile', 'clicks': 800}, {'device': 'desktop', 'clicks': 200}]
    if 'EXTRACT(DOW' in query:
        return [{'day': 1, 'clicks': 600}, {'day': 3, 'clicks': 400}]
    if 'GROUP BY ad.date' in query:
        return [
            {'date': date(2026, 10, 12), 'clicks': 400},
            {'date': date(2026, 10, 14), 'clicks': 600},
        ]
    raise AssertionError(f"Unexpected query: {query}")


# =============================================================================
# Period Windows
# =============================================================================


class TestGetPeriodDates:

    async def test_seven_day_window(self) -> None:
        window = get_period_dates(InsightPeriod.SEVEN_DAYS, today=TODAY)

        assert window.start_date == date(2026, 10, 13)
        assert window.end_date == TODAY
        assert window.previous_start_date == date(2026, 10, 6)
        assert window.previous_end_date == date(2026, 10, 12)

    @pytest.mark.parametrize('period,days', [
        (InsightPeriod.SEVEN_DAYS, 7),
        (InsightPeriod.THIRTY_DAYS, 30),
        (InsightPeriod.NINETY_DAYS, 90),
        (InsightPeriod.YEARLY, 365),
    ])
    async def test_windows_are_equal_length_and_adjacent(self, period, days) -> None:
        window = get_period_dates(period, today=TODAY)

        current_len = (window.end_date - window.start_date).days + 1
        previous_len = (window.previous_end_date - window.previous_start_date).days + 1

        assert current_len == days
        assert previous_len == days
        assert window.previous_end_date == window.start_date - timedelta(days=1)

    async def test_accepts_string_period(self) -> None:
        window = get_period_dates('30d', today=TODAY)

        assert window.start_date == date(2026, 9, 20)

    async def test_invalid_period_raises(self) -> None:
        with pytest.raises(ValueError):
            get_period_dates('14d', today=TODAY)


# =============================================================================
# Aggregation
# =============================================================================


class TestAggregateMetricsForUser:

    async def test_assembles_metrics_from_queries(self, mock_db_pool, mock_conn) -> None:
        # Arrange
        window = get_period_dates(InsightPeriod.SEVEN_DAYS, today=TODAY)
        mock_conn.fetchrow.return_value = {'total_links': 12, 'active_links': 9}
        mock_conn.fetchval.side_effect = (
            lambda query, user_id, start, end: 1000 if start == window.start_date else 800
        )
        mock_conn.fetch.side_effect = _route_fetch

        # Act
        metrics = await aggregate_metrics_for_user(
            'user_123', InsightPeriod.SEVEN_DAYS, pool=mock_db_pool, today=TODAY
        )

        # Assert
        assert metrics.userId == 'user_123'
        assert metrics.period == InsightPeriod.SEVEN_DAYS
        assert metrics.startDate == '2026-10-13'
        assert metrics.endDate == '2026-10-19'
        assert metrics.totalLinks == 12
        assert metrics.activeLinks == 9
        assert metrics.totalClicks == 1000
        assert metrics.previousPeriod.totalClicks == 800
        assert metrics.previousPeriod.totalLinks == 12
        assert [(l.linkId, l.clicks) for l in metrics.topLinksByClicks] == [
            ('link_a', 600), ('link_b', 400)
        ]
        assert [c.country for c in metrics.topCountries] == ['US', 'DE']
        assert metrics.topSources[0].source == 'twitter'
        assert [d.device for d in metrics.topDevices] == ['mobile', 'desktop']
        assert [d.date for d in metrics.dailyClicks] == ['2026-10-12', '2026-10-14']

    async def test_day_of_week_is_zero_filled(self, mock_db_pool, mock_conn) -> None:
        mock_conn.fetchrow.return_value = {'total_links': 1, 'active_links': 1}
        mock_conn.fetch.side_effect = _route_fetch

        metrics = await aggregate_metrics_for_user(
            'user_123', InsightPeriod.THIRTY_DAYS, pool=mock_db_pool, today=TODAY
        )

        assert [d.day for d in metrics.clicksByDayOfWeek] == list(range(7))
        assert [d.clicks for d in metrics.clicksByDayOfWeek] == [0, 600, 0, 400, 0, 0, 0]

    async def test_reads_are_scoped_to_user_and_windows(self, mock_db_pool, mock_conn) -> None:
        window = get_period_dates(InsightPeriod.SEVEN_DAYS, today=TODAY)
        mock_conn.fetchrow.return_value = {'total_links': 0, 'active_links': 0}

        await aggregate_metrics_for_user(
            'user_123', InsightPeriod.SEVEN_DAYS, pool=mock_db_pool, today=TODAY
        )

        click_args = sorted(call.args[1:] for call in mock_conn.fetchval.call_args_list)
        assert click_args == [
            ('user_123', window.previous_start_date, window.previous_end_date),
            ('user_123', window.start_date, window.end_date),
        ]
        limits = sorted(
            call.args[-1] for call in mock_conn.fetch.call_args_list if len(call.args) == 5
        )
        assert limits == [5, 10, 10, 10]

    async def test_account_without_links_yields_zeros(self, mock_db_pool, mock_conn) -> None:
        mock_conn.fetchrow.return_value = {'total_links': 0, 'active_links': 0}
        mock_conn.fetchval.return_value = 0

        metrics = await aggregate_metrics_for_user(
            'user_empty', InsightPeriod.NINETY_DAYS, pool=mock_db_pool, today=TODAY
        )

        assert metrics.totalLinks == 0
        assert metrics.totalClicks == 0
        assert metrics.topLinksByClicks == []
        assert metrics.topCountries == []
        assert metrics.dailyClicks == []
        assert len(metrics.clicksByDayOfWeek) == 7
        assert all(d.clicks == 0 for d in metrics.clicksByDayOfWeek)
        assert metrics.previousPeriod.totalClicks == 0

    async def test_uses_application_pool_by_default(self, mock_db_pool, mock_conn) -> None:
        mock_conn.fetchrow.return_value = {'total_links': 0, 'active_links': 0}

        with patch(
            'insights_backend.services.metrics_aggregator.get_db_pool',
            new=AsyncMock(return_value=mock_db_pool)
        ) as get_pool:
            await aggregate_metrics_for_user('user_123', InsightPeriod.SEVEN_DAYS, today=TODAY)

        get_pool.assert_awaited_once()
        assert mock_db_pool.acquire.call_count == 9

    async def test_query_failure_propagates(self, mock_db_pool, mock_conn) -> None:
        mock_conn.fetchrow.return_value = {'total_links': 1, 'active_links': 1}
        mock_conn.fetch.side_effect = RuntimeError('connection lost')

        with pytest.raises(RuntimeError, match='connection lost'):
            await aggregate_metrics_for_user(
                'user_123', InsightPeriod.SEVEN_DAYS, pool=mock_db_pool, today=TODAY
            )

    async def test_invalid_period_raises_before_querying(self, mock_db_pool) -> None:
        with pytest.raises(ValueError):
            await aggregate_metrics_for_user('user_123', 'weekly', pool=mock_db_pool)

        mock_db_pool.acquire.assert_not_called()
