"""Flarewise API: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.analytics.config_loader import reload_analytics_config
from src.config import get_settings
from src.dependencies import get_insight_cache
from src.middleware.security import SecurityHeadersMiddleware
from src.routers import health, insights

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("flarewise")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Flarewise API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    # Fail at startup, not on the first request, if the analytics config is bad
    path = Path(settings.analytics_config_path) if settings.analytics_config_path else None
    reload_analytics_config(path)
    yield
    cache = get_insight_cache()
    if cache is not None:
        cache.invalidate()
    logger.info("Flarewise API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Flarewise API",
        description=(
            "Personal health insights: lagged correlations between foods, "
            "triggers, medications, symptoms and flares, plus flare trends."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Middleware (last added runs first) ----------

    # Security headers on every response
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS goes last so preflight requests are answered before anything else
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(insights.router, prefix=v1_prefix)

    return app


app = create_app()
