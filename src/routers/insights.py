"""Correlation, feed and trend endpoints.

The caller posts the user's events with each request; the engine computes
over that snapshot and never persists anything.  Handlers are plain ``def``
functions because the engine is synchronous and CPU-bound, so FastAPI runs
them in its threadpool.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.analytics.base import UnknownItemError
from src.analytics.correlation import CorrelationResult, InsufficientData
from src.analytics.engine import InsightEngine, get_analysis_statistics
from src.dependencies import AnalyticsConfigDep, AppSettings, InsightCacheDep
from src.models.insights import (
    AnalysisRequest,
    CorrelationReportRead,
    CorrelationResultRead,
    FeedRequest,
    InsightFeedRead,
    InsufficientDataRead,
    PairBreakdownRead,
    PairRequest,
    TrendAnalysisRead,
    TrendRequest,
)
from src.services.event_source import InMemoryEventSource

router = APIRouter(prefix="/insights", tags=["insights"])
logger = logging.getLogger("flarewise.routers.insights")


def _engine(
    body: AnalysisRequest,
    settings: AppSettings,
    config: AnalyticsConfigDep,
    cache: InsightCacheDep,
) -> InsightEngine:
    if len(body.events) > settings.max_events_per_request:
        raise HTTPException(
            status_code=413,
            detail=f"Too many events ({len(body.events)}); limit is {settings.max_events_per_request}",
        )
    source = InMemoryEventSource.from_events(
        body.user_id, (e.to_event() for e in body.events)
    )
    return InsightEngine(source, config=config, cache=cache)


@router.post("/correlations", response_model=CorrelationReportRead)
def find_correlations(
    body: AnalysisRequest,
    settings: AppSettings,
    config: AnalyticsConfigDep,
    cache: InsightCacheDep,
) -> Any:
    engine = _engine(body, settings, config, cache)
    report = engine.find_correlations(body.user_id, body.time_range, now=body.now)
    statistics = get_analysis_statistics(report, config.correlation.weak_threshold)
    return CorrelationReportRead.from_report(report, statistics)


@router.post("/feed", response_model=InsightFeedRead)
def insight_feed(
    body: FeedRequest,
    settings: AppSettings,
    config: AnalyticsConfigDep,
    cache: InsightCacheDep,
) -> Any:
    engine = _engine(body, settings, config, cache)
    feed = engine.build_insight_feed(
        body.user_id,
        body.time_range,
        count=body.count,
        threshold=body.threshold,
        now=body.now,
    )
    return InsightFeedRead.from_feed(feed)


@router.post("/trend", response_model=TrendAnalysisRead)
def flare_trend(
    body: TrendRequest,
    settings: AppSettings,
    config: AnalyticsConfigDep,
    cache: InsightCacheDep,
) -> Any:
    engine = _engine(body, settings, config, cache)
    analysis = engine.analyze_flare_trend(body.user_id, body.time_range, now=body.now)
    return TrendAnalysisRead.from_analysis(analysis)


@router.post("/pair", response_model=PairBreakdownRead)
def pair_breakdown(
    body: PairRequest,
    settings: AppSettings,
    config: AnalyticsConfigDep,
    cache: InsightCacheDep,
) -> Any:
    engine = _engine(body, settings, config, cache)
    try:
        outcomes = engine.calculate_pair_with_all_lags(
            body.user_id, body.type, body.item1, body.item2, body.time_range, now=body.now
        )
    except UnknownItemError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return PairBreakdownRead(
        type=body.type,
        item1=body.item1,
        item2=body.item2,
        results=[
            CorrelationResultRead.from_result(o)
            for o in outcomes
            if isinstance(o, CorrelationResult)
        ],
        insufficient=[
            InsufficientDataRead.from_result(o)
            for o in outcomes
            if isinstance(o, InsufficientData)
        ],
    )
