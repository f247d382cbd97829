"""
Backend Services Module

Business logic of the Link Insights subsystem.

Services:
- metrics_aggregator: Read-only projection of raw analytics into AggregatedMetrics
- insights_generator: Pure rule engine producing ranked InsightSignal lists,
  plus the inputs hash used to skip redundant work
- cache_manager: insights_cache state machine (create, claim, complete, fail,
  invalidate, reap)

The aggregator and generator hold no state; the cache manager holds only its
version tag and an optional pool. All are consumed by the worker (jobs/) and
the API layer (api/).
"""

# =============================================================================
# Metrics Aggregator Exports
# =============================================================================

from insights_backend.services.metrics_aggregator import (
    PeriodWindow,
    get_period_dates,
    aggregate_metrics_for_user,
)

# =============================================================================
# Insight Generator Exports
# =============================================================================

from insights_backend.services.insights_generator import (
    generate_insights,
    analyze_traffic_trends,
    analyze_geography,
    analyze_performance,
    analyze_temporal_patterns,
    analyze_distributions,
    bin_time_series,
    calculate_inputs_hash,
)

# =============================================================================
# Cache Manager Exports
# =============================================================================

from insights_backend.services.cache_manager import (
    InsightsCacheManager,
    get_cache_manager,
    get_ttl_hours,
    TTL_HOURS,
    ERROR_TTL_HOURS,
)


__all__ = [
    # Metrics aggregator
    'PeriodWindow',
    'get_period_dates',
    'aggregate_metrics_for_user',
    # Insight generator
    'generate_insights',
    'analyze_traffic_trends',
    'analyze_geography',
    'analyze_performance',
    'analyze_temporal_patterns',
    'analyze_distributions',
    'bin_time_series',
    'calculate_inputs_hash',
    # Cache manager
    'InsightsCacheManager',
    'get_cache_manager',
    'get_ttl_hours',
    'TTL_HOURS',
    'ERROR_TTL_HOURS',
]
