"""Pydantic models for the insights API: events in, correlations / trends out."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from src.analytics.base import (
    CorrelationConfidence,
    CorrelationStrength,
    CorrelationType,
    Event,
    EventKind,
    TimeRange,
    TrendDirection,
)
from src.analytics.correlation import CorrelationResult, InsufficientData
from src.analytics.engine import AnalysisStatistics, CorrelationReport, InsightFeed
from src.analytics.prioritization import priority_score
from src.analytics.trend import MonthlyBucket, TrendAnalysis, TrendLine
from src.models.base import FlarewiseBase


# ---------- Requests ----------

class EventIn(FlarewiseBase):
    # No range constraints here: malformed events are skipped and counted by
    # the engine rather than rejecting the whole request.
    item_id: str
    timestamp: datetime
    kind: EventKind
    intensity: float | None = None

    def to_event(self) -> Event:
        return Event(
            item_id=self.item_id,
            timestamp=self.timestamp,
            kind=self.kind,
            intensity=self.intensity,
        )


class AnalysisRequest(FlarewiseBase):
    user_id: str = Field(min_length=1, max_length=128)
    time_range: TimeRange = TimeRange.LAST_30_DAYS
    events: list[EventIn] = Field(default_factory=list)
    now: datetime | None = None  # reference time for the window end; UTC now if omitted


class FeedRequest(AnalysisRequest):
    count: int | None = Field(default=None, ge=0, le=50)
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class PairRequest(AnalysisRequest):
    type: CorrelationType
    item1: str = Field(min_length=1)
    item2: str = Field(min_length=1)


class TrendRequest(AnalysisRequest):
    time_range: TimeRange = TimeRange.ALL


# ---------- Correlations ----------

class CorrelationResultRead(FlarewiseBase):
    type: CorrelationType
    item1: str
    item2: str
    coefficient: float
    strength: CorrelationStrength
    confidence: CorrelationConfidence
    significance: float
    sample_size: int
    lag_hours: int
    time_range: TimeRange
    calculated_at: datetime
    priority_score: float

    @classmethod
    def from_result(cls, result: CorrelationResult) -> CorrelationResultRead:
        return cls(
            type=result.type,
            item1=result.item1,
            item2=result.item2,
            coefficient=result.coefficient,
            strength=result.strength,
            confidence=result.confidence,
            significance=result.significance,
            sample_size=result.sample_size,
            lag_hours=result.lag_hours,
            time_range=result.time_range,
            calculated_at=result.calculated_at,
            priority_score=priority_score(result),
        )


class InsufficientDataRead(FlarewiseBase):
    type: CorrelationType
    item1: str
    item2: str
    current_sample_size: int
    required_sample_size: int
    needed: int

    @classmethod
    def from_result(cls, result: InsufficientData) -> InsufficientDataRead:
        return cls(
            type=result.type,
            item1=result.item1,
            item2=result.item2,
            current_sample_size=result.current_sample_size,
            required_sample_size=result.required_sample_size,
            needed=result.needed,
        )


class AnalysisStatisticsRead(FlarewiseBase):
    total_pairs: int
    significant_count: int
    insufficient_count: int
    undefined_count: int
    skipped_records: int
    by_type: dict[CorrelationType, int]
    by_strength: dict[CorrelationStrength, int]

    @classmethod
    def from_statistics(cls, stats: AnalysisStatistics) -> AnalysisStatisticsRead:
        return cls.model_validate(stats)


class CorrelationReportRead(FlarewiseBase):
    user_id: str
    time_range: TimeRange
    window_start: date
    window_end: date
    results: list[CorrelationResultRead]
    insufficient: list[InsufficientDataRead]
    undefined_pairs: int
    skipped_records: int
    pairs_evaluated: int
    calculated_at: datetime
    statistics: AnalysisStatisticsRead

    @classmethod
    def from_report(
        cls, report: CorrelationReport, statistics: AnalysisStatistics
    ) -> CorrelationReportRead:
        return cls(
            user_id=report.user_id,
            time_range=report.time_range,
            window_start=report.window_start,
            window_end=report.window_end,
            results=[CorrelationResultRead.from_result(r) for r in report.results],
            insufficient=[InsufficientDataRead.from_result(i) for i in report.insufficient],
            undefined_pairs=report.undefined_pairs,
            skipped_records=report.skipped_records,
            pairs_evaluated=report.pairs_evaluated,
            calculated_at=report.calculated_at,
            statistics=AnalysisStatisticsRead.from_statistics(statistics),
        )


class InsightFeedRead(FlarewiseBase):
    user_id: str
    time_range: TimeRange
    top_insights: list[CorrelationResultRead]
    by_type: dict[CorrelationType, list[CorrelationResultRead]]
    strong: list[CorrelationResultRead]
    moderate: list[CorrelationResultRead]
    insufficient: list[InsufficientDataRead]
    skipped_records: int

    @classmethod
    def from_feed(cls, feed: InsightFeed) -> InsightFeedRead:
        def read(results: list[CorrelationResult]) -> list[CorrelationResultRead]:
            return [CorrelationResultRead.from_result(r) for r in results]

        return cls(
            user_id=feed.report.user_id,
            time_range=feed.report.time_range,
            top_insights=read(feed.top_insights),
            by_type={t: read(group) for t, group in feed.by_type.items()},
            strong=read(feed.strong),
            moderate=read(feed.moderate),
            insufficient=[InsufficientDataRead.from_result(i) for i in feed.insufficient],
            skipped_records=feed.report.skipped_records,
        )


class PairBreakdownRead(FlarewiseBase):
    type: CorrelationType
    item1: str
    item2: str
    results: list[CorrelationResultRead]
    insufficient: list[InsufficientDataRead]


# ---------- Trend ----------

class MonthlyBucketRead(FlarewiseBase):
    month_timestamp: datetime
    flare_count: int
    average_severity: float | None = None

    @classmethod
    def from_bucket(cls, bucket: MonthlyBucket) -> MonthlyBucketRead:
        severity = bucket.average_severity
        return cls(
            month_timestamp=bucket.month_timestamp,
            flare_count=bucket.flare_count,
            average_severity=round(severity, 2) if severity is not None else None,
        )


class TrendLineRead(FlarewiseBase):
    slope: float
    intercept: float
    r_squared: float

    @classmethod
    def from_line(cls, line: TrendLine) -> TrendLineRead:
        return cls.model_validate(line)


class OverlayPoint(FlarewiseBase):
    x: int
    y: float


class TrendAnalysisRead(FlarewiseBase):
    data_points: list[MonthlyBucketRead]
    trend_line: TrendLineRead
    trend_direction: TrendDirection
    severity_trend_line: TrendLineRead
    severity_direction: TrendDirection
    overlay: list[OverlayPoint] = Field(default_factory=list)

    @classmethod
    def from_analysis(cls, analysis: TrendAnalysis) -> TrendAnalysisRead:
        overlay = analysis.overlay()
        return cls(
            data_points=[MonthlyBucketRead.from_bucket(b) for b in analysis.data_points],
            trend_line=TrendLineRead.from_line(analysis.trend_line),
            trend_direction=analysis.trend_direction,
            severity_trend_line=TrendLineRead.from_line(analysis.severity_trend_line),
            severity_direction=analysis.severity_direction,
            overlay=[OverlayPoint(x=x, y=y) for x, y in overlay] if overlay else [],
        )
