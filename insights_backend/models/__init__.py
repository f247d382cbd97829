"""
Package initialization file for insights backend models.

Re-exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import data models without knowing the internal layout.

Usage:
    from insights_backend.models import (
        InsightPeriod,
        InsightStatus,
        AggregatedMetrics,
        InsightSignal,
        CacheEntry,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from insights_backend.models.enums import (
    InsightPeriod,
    InsightStatus,
    InsightType,
    InsightCategory,
    JobOutcome,
    PERIOD_DAYS,
)


# =============================================================================
# Schemas
# =============================================================================

from insights_backend.models.schemas import (
    # Aggregated metrics
    LinkClicks,
    CountryClicks,
    SourceClicks,
    DeviceClicks,
    DailyClicks,
    DayOfWeekClicks,
    PreviousPeriodMetrics,
    AggregatedMetrics,
    # Generator output
    InsightSignal,
    # Cache
    CacheEntry,
    InsightsResult,
    CacheStats,
    # Worker
    WorkerConfig,
    UserProcessingResult,
    WorkerRunSummary,
    SystemStatus,
    # API
    InsightsData,
    InsightsResponse,
    InvalidationResponse,
)


__all__ = [
    # Enums
    'InsightPeriod',
    'InsightStatus',
    'InsightType',
    'InsightCategory',
    'JobOutcome',
    'PERIOD_DAYS',
    # Aggregated metrics
    'LinkClicks',
    'CountryClicks',
    'SourceClicks',
    'DeviceClicks',
    'DailyClicks',
    'DayOfWeekClicks',
    'PreviousPeriodMetrics',
    'AggregatedMetrics',
    # Generator output
    'InsightSignal',
    # Cache
    'CacheEntry',
    'InsightsResult',
    'CacheStats',
    # Worker
    'WorkerConfig',
    'UserProcessingResult',
    'WorkerRunSummary',
    'SystemStatus',
    # API
    'InsightsData',
    'InsightsResponse',
    'InvalidationResponse',
]
