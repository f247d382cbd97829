'''
Link Insights Backend Test Suite

Test Modules:
-------------
- test_insights_generator.py: Rule-based insight generation
  - Traffic growth / decline / spike thresholds
  - Geography, performance, temporal and distribution rules
  - Minimum data gate and priority ordering
  - Inputs hash stability and sensitivity

- test_metrics_aggregator.py: Per-user metric aggregation
  - Current / previous window math
  - Result assembly and day-of-week zero filling

- test_cache_manager.py: Insights cache state machine
  - TTL per period, error TTL
  - Creation race, atomic claim, recalculation gate

- test_insights_worker.py: Worker cycle
  - Lost claims, timeouts, failure isolation, counters

- test_insights_api.py: Polling API and dependencies

Running Tests:
--------------
    pip install -e ".[test]"
    pytest insights_backend/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
