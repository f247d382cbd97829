"""
Rule-based insight generation and inputs hashing.

Turns one AggregatedMetrics snapshot into a ranked list of InsightSignal and
computes a stable digest of the inputs that determine that list. Everything
here is pure: no I/O, no clock, no randomness.

Rule families (each independent, zero or more signals):
1. TRAFFIC - period-over-period growth/decline, single-day spikes
2. GEOGRAPHY - country concentration, diversification, emerging market
3. PERFORMANCE - clicks per active link, dominant link
4. TEMPORAL - peak day of week, weekday vs weekend skew
5. DISTRIBUTION - device dominance, source concentration/diversification

Signals are sorted by priority descending (stable, so rules of equal priority
keep family order). Accounts with fewer than minDataPoints clicks get no
signals at all.

Hashing:
    calculate_inputs_hash() hashes a reduced projection of the metrics with the
    daily series downsampled into at most 7 bins. Day-to-day noise that does
    not move a bin's rounded mean leaves the digest unchanged, which keeps the
    worker's skip path effective.
"""

import hashlib
import json
import math
from typing import Any, Dict, List, Sequence

from insights_backend.models.enums import InsightCategory, InsightType
from insights_backend.models.schemas import (
    AggregatedMetrics,
    InsightSignal,
    WorkerConfig,
)


# =============================================================================
# Rule Thresholds
# =============================================================================

SPIKE_MULTIPLIER = 2.0
SPIKE_MIN_DAILY_AVG = 10

GEO_CONCENTRATION_PERCENT = 50
GEO_SIGNIFICANT_SHARE = 0.05
GEO_DIVERSIFICATION_MIN_COUNTRIES = 5
GEO_EMERGING_PERCENT = 20

HIGH_ENGAGEMENT_CLICKS_PER_LINK = 100
LOW_ENGAGEMENT_CLICKS_PER_LINK = 5
LOW_ENGAGEMENT_MIN_ACTIVE_LINKS = 3
TOP_LINK_PERCENT = 40

TEMPORAL_MIN_CLICKS = 50
PEAK_DAY_PERCENT = 25
WEEK_SKEW_RATIO = 1.5

DEVICE_DOMINANCE_PERCENT = 70
SOURCE_CONCENTRATION_PERCENT = 60
SOURCE_SIGNIFICANT_SHARE = 0.10
SOURCE_DIVERSIFICATION_MIN_SOURCES = 3

HASH_DAILY_BINS = 7
HASH_LENGTH = 16

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


# =============================================================================
# Helpers
# =============================================================================


def _round_half_up(value: float) -> int:
    """Round .5 toward +infinity (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def bin_time_series(values: Sequence[float], bins: int) -> List[int]:
    """
    Downsample a series into at most `bins` buckets of rounded means.

    Series with no more than `bins` points are returned unchanged. Otherwise
    the series is cut into consecutive chunks of ceil(len / bins) points; the
    last chunk may be shorter, and the result may hold fewer than `bins`
    entries.

    Args:
        values: Ordered series (e.g. daily clicks).
        bins: Maximum number of buckets.

    Returns:
        List of bucket means rounded half-up to integers.

    Example:
        >>> bin_time_series([1, 2, 3, 4, 5, 6, 7, 8, 9, 10], 7)
        [2, 4, 6, 8, 10]
    """
    if len(values) <= bins:
        return list(values)

    size = math.ceil(len(values) / bins)
    result = []
    for i in range(0, len(values), size):
        chunk = values[i:i + size]
        result.append(_round_half_up(sum(chunk) / len(chunk)))
    return result


def _percent(part: float, whole: float) -> float:
    return (part / whole) * 100


def _skew_percent(high: float, low: float) -> float:
    """Percent by which high exceeds low; 100 when low is empty."""
    if low <= 0:
        return 100.0
    return (high / low - 1) * 100


# =============================================================================
# Traffic
# =============================================================================


def analyze_traffic_trends(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    """
    Period-over-period trend and single-day spike detection.

    Growth/decline is skipped when the previous period had no clicks. The
    spike check runs regardless and uses the mean of the daily series.
    """
    insights: List[InsightSignal] = []
    daily = [d.clicks for d in metrics.dailyClicks]

    previous = metrics.previousPeriod
    if previous is not None and previous.totalClicks > 0:
        delta = _percent(metrics.totalClicks - previous.totalClicks, previous.totalClicks)

        if delta >= config.trendThresholdPercent:
            insights.append(InsightSignal(
                key='traffic_growth',
                type=InsightType.POSITIVE,
                category=InsightCategory.TRAFFIC,
                priority=90,
                metricValue=metrics.totalClicks,
                metricDelta=delta,
                chartData=daily,
                metadata={'period': metrics.period.value},
            ))
        elif delta <= -config.trendThresholdPercent:
            insights.append(InsightSignal(
                key='traffic_decline',
                type=InsightType.WARNING,
                category=InsightCategory.TRAFFIC,
                priority=95,
                metricValue=metrics.totalClicks,
                metricDelta=delta,
                chartData=daily,
                metadata={'period': metrics.period.value},
            ))

    if not daily:
        return insights

    avg_daily = sum(daily) / len(daily)
    if avg_daily <= SPIKE_MIN_DAILY_AVG:
        return insights

    spike = next(
        (d for d in metrics.dailyClicks if d.clicks > avg_daily * SPIKE_MULTIPLIER),
        None
    )
    if spike is not None:
        insights.append(InsightSignal(
            key='traffic_spike',
            type=InsightType.POSITIVE,
            category=InsightCategory.TRAFFIC,
            priority=80,
            metricValue=spike.clicks,
            metricDelta=_percent(spike.clicks - avg_daily, avg_daily),
            metadata={'date': spike.date, 'avgDaily': avg_daily},
        ))

    return insights


# =============================================================================
# Geography
# =============================================================================


def analyze_geography(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    """Country signals; shares are relative to the clicks in topCountries."""
    insights: List[InsightSignal] = []
    countries = metrics.topCountries
    total = sum(c.clicks for c in countries)
    if not countries or total == 0:
        return insights

    top = countries[0]
    top_percent = _percent(top.clicks, total)
    if top_percent > GEO_CONCENTRATION_PERCENT:
        insights.append(InsightSignal(
            key='geo_concentration',
            type=InsightType.INFO,
            category=InsightCategory.GEOGRAPHY,
            priority=60,
            metricValue=top_percent,
            relatedIds=[top.country],
            metadata={'country': top.country, 'clicks': top.clicks},
        ))

    significant = [c for c in countries if c.clicks / total > GEO_SIGNIFICANT_SHARE]
    if len(significant) >= GEO_DIVERSIFICATION_MIN_COUNTRIES:
        insights.append(InsightSignal(
            key='geo_diversification',
            type=InsightType.POSITIVE,
            category=InsightCategory.GEOGRAPHY,
            priority=70,
            metricValue=len(significant),
            relatedIds=[c.country for c in significant],
        ))

    if len(countries) >= 2:
        second = countries[1]
        second_percent = _percent(second.clicks, total)
        if second_percent > GEO_EMERGING_PERCENT:
            insights.append(InsightSignal(
                key='geo_emerging',
                type=InsightType.POSITIVE,
                category=InsightCategory.GEOGRAPHY,
                priority=75,
                metricValue=second_percent,
                relatedIds=[second.country],
                metadata={'country': second.country, 'clicks': second.clicks},
            ))

    return insights


# =============================================================================
# Performance
# =============================================================================


def analyze_performance(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    """
    Engagement (clicks per active link) and dominant-link signals.

    Engagement rules need at least one active link; the dominant-link rule
    only needs clicks.
    """
    insights: List[InsightSignal] = []
    if metrics.totalLinks == 0:
        return insights

    if metrics.activeLinks > 0:
        engagement = metrics.totalClicks / metrics.activeLinks

        if engagement > HIGH_ENGAGEMENT_CLICKS_PER_LINK:
            insights.append(InsightSignal(
                key='performance_high_engagement',
                type=InsightType.POSITIVE,
                category=InsightCategory.PERFORMANCE,
                priority=85,
                metricValue=engagement,
                metadata={
                    'activeLinks': metrics.activeLinks,
                    'avgClicksPerLink': _round_half_up(engagement),
                },
            ))

        if (engagement < LOW_ENGAGEMENT_CLICKS_PER_LINK
                and metrics.activeLinks > LOW_ENGAGEMENT_MIN_ACTIVE_LINKS):
            insights.append(InsightSignal(
                key='performance_low_engagement',
                type=InsightType.WARNING,
                category=InsightCategory.PERFORMANCE,
                priority=85,
                metricValue=engagement,
                metadata={
                    'activeLinks': metrics.activeLinks,
                    'suggestion': 'consider_link_optimization',
                },
            ))

    if metrics.topLinksByClicks and metrics.totalClicks > 0:
        top = metrics.topLinksByClicks[0]
        top_percent = _percent(top.clicks, metrics.totalClicks)
        if top_percent > TOP_LINK_PERCENT:
            insights.append(InsightSignal(
                key='performance_top_link',
                type=InsightType.INFO,
                category=InsightCategory.PERFORMANCE,
                priority=65,
                metricValue=top_percent,
                relatedIds=[top.linkId],
                metadata={'slug': top.slug, 'clicks': top.clicks},
            ))

    return insights


# =============================================================================
# Temporal
# =============================================================================


def analyze_temporal_patterns(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    insights: List[InsightSignal] = []
    buckets = metrics.clicksByDayOfWeek
    if not buckets:
        return insights

    total = sum(d.clicks for d in buckets)
    if total < TEMPORAL_MIN_CLICKS:
        return insights

    # max() keeps the first bucket on ties
    peak = max(buckets, key=lambda d: d.clicks)
    peak_percent = _percent(peak.clicks, total)
    if peak_percent > PEAK_DAY_PERCENT:
        insights.append(InsightSignal(
            key='temporal_peak_day',
            type=InsightType.POSITIVE,
            category=InsightCategory.TEMPORAL,
            priority=70,
            metricValue=peak_percent,
            metadata={'dayOfWeek': DAY_NAMES[peak.day], 'clicks': peak.clicks},
        ))

    weekday_avg = sum(d.clicks for d in buckets if 1 <= d.day <= 5) / 5
    weekend_avg = sum(d.clicks for d in buckets if d.day in (0, 6)) / 2
    averages = {
        'weekendAvg': _round_half_up(weekend_avg),
        'weekdayAvg': _round_half_up(weekday_avg),
    }

    # total >= TEMPORAL_MIN_CLICKS, so at most one side is empty
    if weekend_avg > weekday_avg and weekend_avg >= weekday_avg * WEEK_SKEW_RATIO:
        insights.append(InsightSignal(
            key='temporal_weekend_peak',
            type=InsightType.INFO,
            category=InsightCategory.TEMPORAL,
            priority=65,
            metricValue=_skew_percent(weekend_avg, weekday_avg),
            metadata=averages,
        ))
    elif weekday_avg > weekend_avg and weekday_avg >= weekend_avg * WEEK_SKEW_RATIO:
        insights.append(InsightSignal(
            key='temporal_weekday_peak',
            type=InsightType.INFO,
            category=InsightCategory.TEMPORAL,
            priority=65,
            metricValue=_skew_percent(weekday_avg, weekend_avg),
            metadata=averages,
        ))

    return insights


# =============================================================================
# Distributions (device / source)
# =============================================================================


def analyze_distributions(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    insights: List[InsightSignal] = []

    device_total = sum(d.clicks for d in metrics.topDevices)
    if metrics.topDevices and device_total > 0:
        top_device = metrics.topDevices[0]
        device_percent = _percent(top_device.clicks, device_total)
        if device_percent > DEVICE_DOMINANCE_PERCENT:
            insights.append(InsightSignal(
                key='device_dominance',
                type=InsightType.INFO,
                category=InsightCategory.DEVICE,
                priority=55,
                metricValue=device_percent,
                metadata={'device': top_device.device, 'clicks': top_device.clicks},
            ))

    source_total = sum(s.clicks for s in metrics.topSources)
    if metrics.topSources and source_total > 0:
        top_source = metrics.topSources[0]
        source_percent = _percent(top_source.clicks, source_total)
        if source_percent > SOURCE_CONCENTRATION_PERCENT:
            insights.append(InsightSignal(
                key='source_concentration',
                type=InsightType.INFO,
                category=InsightCategory.SOURCE,
                priority=60,
                metricValue=source_percent,
                metadata={'source': top_source.source, 'clicks': top_source.clicks},
            ))

        significant = [
            s for s in metrics.topSources if s.clicks / source_total > SOURCE_SIGNIFICANT_SHARE
        ]
        if len(significant) >= SOURCE_DIVERSIFICATION_MIN_SOURCES:
            insights.append(InsightSignal(
                key='source_diversification',
                type=InsightType.POSITIVE,
                category=InsightCategory.SOURCE,
                priority=65,
                metricValue=len(significant),
                relatedIds=[s.source for s in significant],
            ))

    return insights


# =============================================================================
# Entry Points
# =============================================================================


def generate_insights(metrics: AggregatedMetrics, config: WorkerConfig) -> List[InsightSignal]:
    """
    Run every rule family and rank the resulting signals.

    Args:
        metrics: Aggregated snapshot for one (user, period).
        config: Worker configuration (minDataPoints, trendThresholdPercent).

    Returns:
        Signals sorted by priority descending; empty when the account has
        fewer than config.minDataPoints clicks.

    Example:
        >>> signals = generate_insights(metrics, WorkerConfig())
        >>> [s.key for s in signals]
        ['traffic_growth', 'geo_emerging', 'geo_concentration']
    """
    if metrics.totalClicks < config.minDataPoints:
        return []

    insights: List[InsightSignal] = []
    insights.extend(analyze_traffic_trends(metrics, config))
    insights.extend(analyze_geography(metrics, config))
    insights.extend(analyze_performance(metrics, config))
    insights.extend(analyze_temporal_patterns(metrics, config))
    insights.extend(analyze_distributions(metrics, config))

    insights.sort(key=lambda s: s.priority, reverse=True)
    return insights


def _hash_projection(metrics: AggregatedMetrics) -> Dict[str, Any]:
    previous_clicks = metrics.previousPeriod.totalClicks if metrics.previousPeriod else 0
    daily = [d.clicks for d in metrics.dailyClicks]

    # Key order is part of the digest
    return {
        'totalClicks': metrics.totalClicks,
        'totalLinks': metrics.totalLinks,
        'activeLinks': metrics.activeLinks,
        'topCountries': [{'c': c.country, 'v': c.clicks} for c in metrics.topCountries[:3]],
        'topLinks': [link.clicks for link in metrics.topLinksByClicks[:3]],
        'previousClicks': previous_clicks,
        'dailyBins': bin_time_series(daily, HASH_DAILY_BINS) if daily else [],
    }


def calculate_inputs_hash(metrics: AggregatedMetrics) -> str:
    """
    Deterministic digest of the inputs that drive insight generation.

    The projection is serialized as compact JSON with a fixed key order and
    hashed with SHA-256; the first 16 hex characters are returned.

    Args:
        metrics: Aggregated snapshot for one (user, period).

    Returns:
        16-character lowercase hex string.
    """
    payload = json.dumps(_hash_projection(metrics), separators=(',', ':'))
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:HASH_LENGTH]
