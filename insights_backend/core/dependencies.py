"""
FastAPI dependency injection module for the Link Insights backend.

This module provides reusable FastAPI dependencies for configuration access,
the insights cache manager and the caller's identity, so endpoint handlers
stay thin and can be tested with dependency overrides.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_cache_manager_dependency: Cache manager scoped to INSIGHTS_VERSION
- get_current_user_id: Account id from the X-User-Id header (401 if missing)
- SettingsDep, CacheManagerDep, CurrentUserDep: Annotated aliases

Authentication:
    Tokens are verified by the upstream gateway, which forwards the resolved
    account id in the X-User-Id header. This service only checks presence.

Usage Examples:
    @router.get("/insights")
    async def get_insights(
        user_id: CurrentUserDep,
        cache_manager: CacheManagerDep,
    ) -> InsightsResponse:
        entry, created = await cache_manager.get_or_create_cache(user_id, period)
        ...

    # In tests
    app.dependency_overrides[get_cache_manager_dependency] = lambda: mock_manager
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from insights_backend.core.config import Settings, get_settings
from insights_backend.core.database import get_db_pool
from insights_backend.services.cache_manager import InsightsCacheManager


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can swap configuration with
    app.dependency_overrides[get_settings_dependency].

    Raises:
        pydantic.ValidationError: If required variables (DATABASE_URL) are missing.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Cache Manager Dependency
# =============================================================================

async def get_cache_manager_dependency(settings: SettingsDep) -> InsightsCacheManager:
    """
    Build a cache manager bound to the application pool and configured version.

    Returns:
        InsightsCacheManager: Manager for INSIGHTS_VERSION with the configured
            error retry TTL.
    """
    pool = await get_db_pool()
    return InsightsCacheManager(
        version=settings.insights_version,
        pool=pool,
        error_ttl_hours=settings.error_retry_ttl_hours,
    )


CacheManagerDep = Annotated[InsightsCacheManager, Depends(get_cache_manager_dependency)]


# =============================================================================
# Caller Identity
# =============================================================================

async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None
) -> str:
    """
    Resolve the calling account from the gateway-supplied header.

    Raises:
        HTTPException: 401 if the header is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity"
        )
    return x_user_id.strip()


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
