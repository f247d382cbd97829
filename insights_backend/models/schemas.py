"""
Pydantic models for the Link Insights backend.

This module provides type-safe data validation and serialization for:
- Aggregated click metrics produced by the metrics aggregator
- Insight signals produced by the rule-based generator
- Cache entries persisted in the insights_cache table
- Worker configuration and per-cycle results
- API polling responses and operational status payloads

Field names use camelCase to match the JSON contract consumed by the dashboard;
the insights array is stored as JSONB in exactly this shape.

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from insights_backend.models.enums import (
    InsightCategory,
    InsightPeriod,
    InsightStatus,
    InsightType,
    JobOutcome,
)


# =============================================================================
# Aggregated Metrics (metrics aggregator output)
# =============================================================================


class LinkClicks(BaseModel):
    """Clicks attributed to a single link within the analysis window."""
    linkId: str
    slug: str
    clicks: int = Field(..., ge=0)


class CountryClicks(BaseModel):
    """Clicks attributed to one country code."""
    country: str
    clicks: int = Field(..., ge=0)


class SourceClicks(BaseModel):
    """Clicks attributed to one traffic source (referrer, utm source, ...)."""
    source: str
    clicks: int = Field(..., ge=0)


class DeviceClicks(BaseModel):
    """Clicks attributed to one device class."""
    device: str
    clicks: int = Field(..., ge=0)


class DailyClicks(BaseModel):
    """Total clicks for one calendar day (ISO YYYY-MM-DD)."""
    date: str
    clicks: int = Field(..., ge=0)


class DayOfWeekClicks(BaseModel):
    """Clicks bucketed by UTC day of week, Sunday=0 ... Saturday=6."""
    day: int = Field(..., ge=0, le=6)
    clicks: int = Field(..., ge=0)


class PreviousPeriodMetrics(BaseModel):
    """Totals for the equal-length window immediately preceding the current one."""
    totalClicks: int = Field(default=0, ge=0)
    totalLinks: int = Field(default=0, ge=0)


class AggregatedMetrics(BaseModel):
    """
    Flat click-analytics snapshot for one (user, period) pair.

    Produced per worker run and never persisted on its own. The top lists are
    sorted by clicks descending and capped (links/countries/sources at 10,
    devices at 5); dailyClicks only contains dates inside [startDate, endDate].
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "userId": "user_123",
                "period": "30d",
                "startDate": "2026-09-20",
                "endDate": "2026-10-19",
                "totalLinks": 12,
                "activeLinks": 10,
                "totalClicks": 1000,
                "topCountries": [{"country": "US", "clicks": 600}],
                "previousPeriod": {"totalClicks": 800, "totalLinks": 12},
            }
        }
    )

    userId: str
    period: InsightPeriod
    startDate: str
    endDate: str
    totalLinks: int = Field(default=0, ge=0)
    activeLinks: int = Field(default=0, ge=0)
    totalClicks: int = Field(default=0, ge=0)
    topLinksByClicks: List[LinkClicks] = Field(default_factory=list)
    topCountries: List[CountryClicks] = Field(default_factory=list)
    topSources: List[SourceClicks] = Field(default_factory=list)
    topDevices: List[DeviceClicks] = Field(default_factory=list)
    dailyClicks: List[DailyClicks] = Field(default_factory=list)
    clicksByDayOfWeek: List[DayOfWeekClicks] = Field(default_factory=list)
    previousPeriod: Optional[PreviousPeriodMetrics] = None


# =============================================================================
# Insight Signals (generator output)
# =============================================================================


class InsightSignal(BaseModel):
    """
    One prioritized, machine-readable insight.

    Signals carry data only; the UI maps `key` to copy. A signal has no
    identity beyond its key within a single generation run.
    """
    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "key": "traffic_growth",
                "type": "positive",
                "category": "traffic",
                "priority": 90,
                "metricValue": 1000,
                "metricDelta": 25.0,
                "chartData": [30, 35, 41],
                "metadata": {"period": "30d"},
            }
        }
    )

    key: str = Field(..., min_length=1, description="Stable rule identifier")
    type: InsightType
    category: InsightCategory
    priority: int = Field(..., ge=0, le=100, description="Higher is more important")
    metricValue: float
    metricDelta: Optional[float] = Field(
        default=None,
        description="Percent change backing the signal, when applicable"
    )
    relatedIds: Optional[List[str]] = Field(
        default=None,
        description="Link ids, country codes or sources the signal refers to"
    )
    chartData: Optional[List[float]] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# Cache Entries
# =============================================================================


class CacheEntry(BaseModel):
    """
    Persistent insights cache row, unique per (userId, period, version).

    inputsHash is empty until the first successful computation; insights is
    empty until status reaches completed.
    """
    userId: str
    period: InsightPeriod
    version: str
    status: InsightStatus
    inputsHash: str = ''
    insights: List[InsightSignal] = Field(default_factory=list)
    totalLinks: int = 0
    totalClicks: int = 0
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    error: Optional[str] = None
    calculatedAt: Optional[datetime] = None
    expiresAt: datetime
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class InsightsResult(BaseModel):
    """Write model for a successful generation, saved by the cache manager."""
    userId: str
    period: InsightPeriod
    version: str
    inputsHash: str
    totalLinks: int = 0
    totalClicks: int = 0
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    insights: List[InsightSignal] = Field(default_factory=list)
    calculatedAt: datetime
    expiresAt: datetime


class CacheStats(BaseModel):
    """Histogram of cache entries by status; missing statuses count as zero."""
    pending: int = 0
    calculating: int = 0
    completed: int = 0
    error: int = 0


# =============================================================================
# Worker Models
# =============================================================================


class WorkerConfig(BaseModel):
    """
    Tuning knobs for one insights worker cycle and for the insight rules.

    Defaults mirror Settings; use from_settings() to build from the environment.
    """
    batchSize: int = Field(default=50, ge=1)
    concurrency: int = Field(default=5, ge=1)
    timeoutMs: int = Field(default=30000, ge=1)
    minDataPoints: int = Field(default=10, ge=0)
    trendThresholdPercent: float = Field(default=15.0, gt=0)

    @classmethod
    def from_settings(cls, settings: Any) -> "WorkerConfig":
        return cls(
            batchSize=settings.worker_batch_size,
            concurrency=settings.worker_concurrency,
            timeoutMs=settings.worker_timeout_ms,
            minDataPoints=settings.insights_min_data_points,
            trendThresholdPercent=settings.trend_threshold_percent,
        )


class UserProcessingResult(BaseModel):
    """Outcome of processing a single pending cache entry."""
    userId: str
    period: InsightPeriod
    outcome: JobOutcome
    insightsGenerated: int = 0
    durationMs: int = 0
    error: Optional[str] = None


class WorkerRunSummary(BaseModel):
    """
    Counters for one worker cycle.

    processed counts every pending entry fetched; successful covers both the
    completed and unchanged outcomes; skipped counts lost claims.
    """
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    durationMs: int = 0
    results: List[UserProcessingResult] = Field(default_factory=list)


class SystemStatus(BaseModel):
    """Operational snapshot of the insights cache."""
    timestamp: datetime
    cache: CacheStats
    version: str


# =============================================================================
# API Response Models
# =============================================================================


class InsightsData(BaseModel):
    """Payload returned to the dashboard for a completed cache entry."""
    userId: str
    period: InsightPeriod
    version: str
    inputsHash: str
    totalLinks: int
    totalClicks: int
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    insights: List[InsightSignal]
    calculatedAt: Optional[datetime] = None
    expiresAt: datetime


class InsightsResponse(BaseModel):
    """
    Polling response for GET /insights.

    - completed: data is set
    - pending/calculating: estimatedWaitTime (seconds) and message are set
    - error: error and message are set
    """
    status: InsightStatus
    data: Optional[InsightsData] = None
    estimatedWaitTime: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None


class InvalidationResponse(BaseModel):
    """Result of a cache invalidation or maintenance delete."""
    success: bool = True
    message: str
    deletedCount: int = 0
