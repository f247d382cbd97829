"""
Link Insights Backend Package.

FastAPI service layer and batch worker for cached, rule-based analytics
insights in the link shortener dashboard.

Subpackages:
    - api: FastAPI route handlers (polling, invalidation, maintenance)
    - core: Configuration, database pool, and dependencies
    - models: Pydantic schemas and enums
    - services: Metrics aggregation, insight rules, and the cache manager
    - jobs: Insights worker cycle and CLI
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
