"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.analytics.cache import InsightCache
from src.analytics.config_loader import AnalyticsConfig, get_analytics_config
from src.config import Settings, get_settings


@lru_cache
def get_insight_cache() -> InsightCache | None:
    """Process-wide insight cache, or None when disabled in settings."""
    settings = get_settings()
    if not settings.insight_cache_enabled:
        return None
    return InsightCache(
        ttl_seconds=settings.insight_cache_ttl_seconds,
        maxsize=settings.insight_cache_maxsize,
    )


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
AnalyticsConfigDep = Annotated[AnalyticsConfig, Depends(get_analytics_config)]
InsightCacheDep = Annotated[InsightCache | None, Depends(get_insight_cache)]
