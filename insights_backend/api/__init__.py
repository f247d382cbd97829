"""
Backend API package initialization.

This package contains FastAPI router modules for the Link Insights backend:
- insights: Polling contract for cached insights, invalidation and cache
  operations endpoints
"""

from fastapi import APIRouter

# Import router modules
from insights_backend.api.insights import router as insights_router

# Create main API router
api_router = APIRouter()

# insights router has its own /insights prefix
api_router.include_router(insights_router)

__all__ = [
    "api_router",
    "insights_router",
]
