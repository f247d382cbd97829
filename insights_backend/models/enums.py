"""
Enumeration definitions for the Link Insights backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models and to allow direct comparison with the
string values stored in PostgreSQL.
"""

from enum import Enum


class InsightPeriod(str, Enum):
    """
    Analysis window requested by a user.

    Values: '7d' | '30d' | '90d' | 'yearly'

    Each period maps to a lookback length in days (see PERIOD_DAYS) and to a
    cache TTL; shorter windows churn faster and expire sooner.
    """
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"
    NINETY_DAYS = "90d"
    YEARLY = "yearly"


# Lookback length of each analysis window, in calendar days
PERIOD_DAYS = {
    InsightPeriod.SEVEN_DAYS: 7,
    InsightPeriod.THIRTY_DAYS: 30,
    InsightPeriod.NINETY_DAYS: 90,
    InsightPeriod.YEARLY: 365,
}


class InsightStatus(str, Enum):
    """
    Cache entry lifecycle states.

    - pending: Entry created by a request, waiting for a worker
    - calculating: Claimed by exactly one worker
    - completed: Insights computed and stored
    - error: Last attempt failed; retried once the short error TTL passes
    """
    PENDING = "pending"
    CALCULATING = "calculating"
    COMPLETED = "completed"
    ERROR = "error"


class InsightType(str, Enum):
    """Tone of an insight signal as rendered on an insight card."""
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    POSITIVE = "positive"
    INFO = "info"


class InsightCategory(str, Enum):
    """Analytical family an insight signal belongs to."""
    TRAFFIC = "traffic"
    GEOGRAPHY = "geography"
    PERFORMANCE = "performance"
    TEMPORAL = "temporal"
    DEVICE = "device"
    SOURCE = "source"


class JobOutcome(str, Enum):
    """
    Result of processing one pending cache entry in a worker cycle.

    - completed: Insights regenerated and saved
    - unchanged: Inputs hash matched the stored one; only the expiry was refreshed
    - skipped: Another worker claimed the entry first (lost race, not an error)
    - failed: Aggregation, generation or persistence raised; entry marked as error
    """
    COMPLETED = "completed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"
