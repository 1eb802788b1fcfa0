"""Monthly flare trend regression.

Flares are bucketed by calendar month (UTC).  With at least three non-empty
months, an ordinary least squares line is fit over ``(bucket_index, metric)``
for flare frequency and, in parallel, for average flare severity.

Sign convention (both metrics; more or worse flares is bad):
    slope >= +deadband  →  declining
    slope <= −deadband  →  improving
    |slope| < deadband  →  stable

With fewer than three months no line is fit: a slope through one or two
points is noise, so the direction is ``insufficient-data`` and the trend line
is zeroed.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, Sequence

from src.analytics.base import Event, EventKind, TrendDirection

logger = logging.getLogger("flarewise.analytics.trend")

_EPSILON = 1e-12


@dataclass(frozen=True)
class MonthlyBucket:
    """Flare statistics for one calendar month.

    Attributes:
        month:            First day of the month.
        flare_count:      Flares that started in the month.
        average_severity: Mean peak severity of those flares, or None if no
                          flare in the month reported a severity.
    """

    month: date
    flare_count: int
    average_severity: float | None = None

    @property
    def month_timestamp(self) -> datetime:
        return datetime(self.month.year, self.month.month, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TrendLine:
    """``y = slope · x + intercept`` over bucket indexes, with goodness of fit."""

    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0

    def value_at(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class TrendAnalysis:
    """Flare frequency and severity trend over monthly buckets."""

    data_points: tuple[MonthlyBucket, ...] = ()
    trend_line: TrendLine = field(default_factory=TrendLine)
    trend_direction: TrendDirection = TrendDirection.INSUFFICIENT_DATA
    severity_trend_line: TrendLine = field(default_factory=TrendLine)
    severity_direction: TrendDirection = TrendDirection.INSUFFICIENT_DATA

    def overlay(self) -> tuple[tuple[int, float], tuple[int, float]] | None:
        """Endpoints of the frequency trend line from the first to the last bucket.

        Returns None when no line was fit.
        """
        if self.trend_direction is TrendDirection.INSUFFICIENT_DATA:
            return None
        last = len(self.data_points) - 1
        return (0, self.trend_line.value_at(0)), (last, self.trend_line.value_at(last))


def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def bucket_flares_by_month(flare_events: Iterable[Event]) -> list[MonthlyBucket]:
    """Group flare onsets into non-empty calendar months, oldest first."""
    counts: dict[date, int] = {}
    severities: dict[date, list[float]] = {}
    for event in flare_events:
        if event.kind is not EventKind.FLARE:
            continue
        month = month_start(event.day)
        counts[month] = counts.get(month, 0) + 1
        if event.intensity is not None:
            severities.setdefault(month, []).append(float(event.intensity))

    buckets = []
    for month in sorted(counts):
        values = severities.get(month)
        buckets.append(
            MonthlyBucket(
                month=month,
                flare_count=counts[month],
                average_severity=statistics.mean(values) if values else None,
            )
        )
    return buckets


def linear_regression(points: Sequence[tuple[float, float]]) -> TrendLine:
    """Fit an ordinary least squares line.

    Args:
        points: ``(x, y)`` pairs.

    Returns:
        TrendLine with slope, intercept and R².

    Raises:
        ValueError: With fewer than 2 points, or when all x are identical.
    """
    n = len(points)
    if n < 2:
        raise ValueError("Linear regression requires at least 2 data points")

    sum_x = sum(p[0] for p in points)
    sum_y = sum(p[1] for p in points)
    sum_xy = sum(p[0] * p[1] for p in points)
    sum_x2 = sum(p[0] * p[0] for p in points)

    denominator = n * sum_x2 - sum_x * sum_x
    if abs(denominator) < _EPSILON:
        raise ValueError("Cannot compute regression: all x values are identical")

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_total = sum((p[1] - mean_y) ** 2 for p in points)
    if ss_total < _EPSILON:
        r_squared = 1.0 if abs(slope) < _EPSILON else 0.0
    else:
        ss_residual = sum((p[1] - (slope * p[0] + intercept)) ** 2 for p in points)
        r_squared = 1.0 - ss_residual / ss_total

    return TrendLine(slope=slope, intercept=intercept, r_squared=r_squared)


def classify_trend(slope: float, deadband: float = 0.1) -> TrendDirection:
    """Classify a frequency or severity slope (higher metric = worse)."""
    if abs(slope) < deadband:
        return TrendDirection.STABLE
    return TrendDirection.DECLINING if slope > 0 else TrendDirection.IMPROVING


def analyze_trend(
    flare_events: Iterable[Event],
    *,
    min_buckets: int = 3,
    deadband: float = 0.1,
) -> TrendAnalysis:
    """Build the monthly flare TrendAnalysis.

    Args:
        flare_events: Flare onset events (kind FLARE, intensity = peak severity).
        min_buckets:  Non-empty months required before any line is fit.
        deadband:     |slope| below this is ``stable``.
    """
    buckets = bucket_flares_by_month(flare_events)
    if len(buckets) < min_buckets:
        logger.info(
            "Insufficient flare history for trend: %d month(s) (need %d)",
            len(buckets), min_buckets,
        )
        return TrendAnalysis(data_points=tuple(buckets))

    frequency_line = linear_regression(
        [(float(i), float(b.flare_count)) for i, b in enumerate(buckets)]
    )

    severity_points = [
        (float(i), b.average_severity)
        for i, b in enumerate(buckets)
        if b.average_severity is not None
    ]
    if len(severity_points) >= min_buckets:
        severity_line = linear_regression(severity_points)
        severity_direction = classify_trend(severity_line.slope, deadband)
    else:
        severity_line = TrendLine()
        severity_direction = TrendDirection.INSUFFICIENT_DATA

    return TrendAnalysis(
        data_points=tuple(buckets),
        trend_line=frequency_line,
        trend_direction=classify_trend(frequency_line.slope, deadband),
        severity_trend_line=severity_line,
        severity_direction=severity_direction,
    )
