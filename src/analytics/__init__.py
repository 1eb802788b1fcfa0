"""Flarewise insight engine: public API.

Usage::

    from src.analytics import InsightEngine, TimeRange
    from src.services.event_source import InMemoryEventSource

    source = InMemoryEventSource.from_events("user_1", events)
    engine = InsightEngine(source)

    feed = engine.build_insight_feed("user_1", TimeRange.LAST_30_DAYS)
    for insight in feed.top_insights:
        print(insight.item1, insight.item2, insight.coefficient, insight.strength)

    trend = engine.analyze_flare_trend("user_1", TimeRange.ALL)
    print(trend.trend_direction)    # TrendDirection.IMPROVING
"""

from __future__ import annotations

from src.analytics.base import (
    AnalyticsError,
    CorrelationConfidence,
    CorrelationStrength,
    CorrelationType,
    Event,
    EventKind,
    SeriesAlignmentError,
    TimeRange,
    TimeSeries,
    TrendDirection,
    UnknownItemError,
)
from src.analytics.config_loader import AnalyticsConfig, get_analytics_config
from src.analytics.correlation import CorrelationResult, InsufficientData
from src.analytics.engine import (
    AnalysisStatistics,
    CorrelationReport,
    InsightEngine,
    InsightFeed,
)
from src.analytics.trend import MonthlyBucket, TrendAnalysis, TrendLine

__all__ = [
    "AnalysisStatistics",
    "AnalyticsConfig",
    "AnalyticsError",
    "CorrelationConfidence",
    "CorrelationReport",
    "CorrelationResult",
    "CorrelationStrength",
    "CorrelationType",
    "Event",
    "EventKind",
    "InsightEngine",
    "InsightFeed",
    "InsufficientData",
    "MonthlyBucket",
    "SeriesAlignmentError",
    "TimeRange",
    "TimeSeries",
    "TrendAnalysis",
    "TrendDirection",
    "TrendLine",
    "UnknownItemError",
    "get_analytics_config",
]
