"""Liveness endpoint; public, no auth."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.analytics.config_loader import get_analytics_config
from src.config import get_settings

router = APIRouter(tags=["system"])
logger = logging.getLogger("flarewise.health")


@router.get("/health")
def health_check() -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports whether the analytics config loaded.
    """
    settings = get_settings()
    config_version: str | None = None
    try:
        config_version = get_analytics_config().version
    except (OSError, ValueError) as exc:
        logger.warning("Health check config probe failed: %s", exc)

    return {
        "status": "healthy" if config_version else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "analytics_config": config_version or "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
