"""Temporal correlation between a cause series and an effect series.

For each (cause, effect) pair the calculator walks a small, fixed set of lag
candidates, shifts the effect series backward by the lag, and computes Pearson
ρ over the overlapping buckets.  The lag with the largest |ρ| wins; ties go to
the smallest lag.

Outcomes per pair:
    CorrelationResult  at least one lag had enough aligned buckets and a
                       defined ρ.
    InsufficientData   no lag reached ``min_reportable`` aligned buckets.
    None               every scored lag had a zero-variance series, so ρ is
                       undefined and the pair is excluded from output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from src.analytics.aggregator import align
from src.analytics.base import (
    CorrelationConfidence,
    CorrelationStrength,
    CorrelationType,
    SeriesAlignmentError,
    TimeRange,
    TimeSeries,
    utc_now,
)
from src.analytics.classifier import (
    classify_confidence,
    classify_strength,
    is_reportable,
    samples_needed,
    significance_proxy,
)
from src.analytics.config_loader import AnalyticsConfig, ClassifierThresholds

logger = logging.getLogger("flarewise.analytics.correlation")


@dataclass(frozen=True)
class CorrelationResult:
    """A reportable correlation between two items.

    ``strength`` and ``confidence`` are derived on read from
    ``(coefficient, sample_size)`` and the thresholds the result was computed
    with; they are never stored.

    Attributes:
        type:          Pair kind (e.g. food-symptom).
        item1:         Cause item id.
        item2:         Effect item id (symptom name or ``flare_severity``).
        coefficient:   Pearson ρ at the selected lag, in [-1, 1].
        significance:  Heuristic significance proxy (lower = more credible).
        sample_size:   Aligned bucket pairs used at the selected lag.
        lag_hours:     Selected lag candidate.
        time_range:    Window the result was computed over.
        calculated_at: UTC timestamp.
        thresholds:    Classifier thresholds in effect.
    """

    type: CorrelationType
    item1: str
    item2: str
    coefficient: float
    significance: float
    sample_size: int
    lag_hours: int
    time_range: TimeRange
    calculated_at: datetime = field(default_factory=utc_now)
    thresholds: ClassifierThresholds = field(
        default_factory=ClassifierThresholds, repr=False, compare=False
    )

    @property
    def strength(self) -> CorrelationStrength:
        return classify_strength(
            self.coefficient, self.thresholds.strong, self.thresholds.moderate
        )

    @property
    def confidence(self) -> CorrelationConfidence:
        return classify_confidence(
            self.sample_size,
            self.thresholds.high_confidence,
            self.thresholds.medium_confidence,
        )


@dataclass(frozen=True)
class InsufficientData:
    """A pair that exists but has too few aligned buckets to report.

    Rendered as a "need N more" indicator rather than hidden.
    """

    type: CorrelationType
    item1: str
    item2: str
    current_sample_size: int
    required_sample_size: int

    @property
    def needed(self) -> int:
        return samples_needed(self.current_sample_size, self.required_sample_size)


# ---------------------------------------------------------------------------
# Numeric core
# ---------------------------------------------------------------------------


def pearson(x: Sequence[float], y: Sequence[float]) -> float | None:
    """Compute the Pearson correlation coefficient between two aligned sequences.

    Args:
        x: First variable.
        y: Second variable, same length as ``x``.

    Returns:
        ρ in [-1.0, 1.0], or None when it is undefined (fewer than 2 points,
        or either sequence has zero variance).

    Raises:
        SeriesAlignmentError: If the sequences differ in length.
    """
    if len(x) != len(y):
        raise SeriesAlignmentError(
            f"Cannot correlate sequences of different length ({len(x)} vs {len(y)})"
        )

    n = len(x)
    if n < 2:
        return None
    # Exact constant check; a computed variance can be a tiny non-zero residue
    if min(x) == max(x) or min(y) == max(y):
        return None

    mean_x = math.fsum(x) / n
    mean_y = math.fsum(y) / n

    cov = math.fsum((xi - mean_x) * (yi - mean_y) for xi, yi in zip(x, y))
    var_x = math.fsum((xi - mean_x) ** 2 for xi in x)
    var_y = math.fsum((yi - mean_y) ** 2 for yi in y)

    denominator = math.sqrt(var_x * var_y)
    if denominator == 0:
        return None

    return min(max(cov / denominator, -1.0), 1.0)


def lag_days(lag_hours: int) -> int:
    """Whole-day shift applied to daily buckets for a lag in hours."""
    return lag_hours // 24


def lag_shift(
    x: Sequence[float], y: Sequence[float], lag_hours: int
) -> tuple[Sequence[float], Sequence[float]]:
    """Pair cause day ``d`` with effect day ``d + lag``.

    Returns the overlapping slices; both are empty when the lag is at least
    as long as the series.
    """
    k = lag_days(lag_hours)
    n = min(len(x), len(y))
    if k >= n:
        return (), ()
    return x[: n - k], y[k:n]


# ---------------------------------------------------------------------------
# Pair calculator
# ---------------------------------------------------------------------------


def correlate_at_lag(
    correlation_type: CorrelationType,
    cause: TimeSeries,
    effect: TimeSeries,
    lag_hours: int,
    *,
    config: AnalyticsConfig,
    time_range: TimeRange,
    calculated_at: datetime | None = None,
) -> CorrelationResult | InsufficientData | None:
    """Correlate a pair at one fixed lag."""
    x, y = align(cause, effect)
    xs, ys = lag_shift(x, y, lag_hours)
    thresholds = config.thresholds
    n = len(xs)

    if not is_reportable(n, thresholds.min_reportable):
        return InsufficientData(
            type=correlation_type,
            item1=cause.item_id,
            item2=effect.item_id,
            current_sample_size=n,
            required_sample_size=thresholds.min_reportable,
        )

    rho = pearson(xs, ys)
    if rho is None:
        return None

    return CorrelationResult(
        type=correlation_type,
        item1=cause.item_id,
        item2=effect.item_id,
        coefficient=rho,
        significance=significance_proxy(rho, n),
        sample_size=n,
        lag_hours=lag_hours,
        time_range=time_range,
        calculated_at=calculated_at or utc_now(),
        thresholds=thresholds,
    )


def correlate_pair(
    correlation_type: CorrelationType,
    cause: TimeSeries,
    effect: TimeSeries,
    *,
    config: AnalyticsConfig,
    time_range: TimeRange,
    calculated_at: datetime | None = None,
) -> CorrelationResult | InsufficientData | None:
    """Search every lag candidate and keep the one with the largest |ρ|.

    Args:
        correlation_type: Pair kind.
        cause:            Cause series (food / trigger / medication).
        effect:           Effect series (symptom or flare severity).
        config:           Thresholds and lag candidates.
        time_range:       Window label stored on the result.
        calculated_at:    Timestamp stored on the result.

    Returns:
        CorrelationResult, InsufficientData, or None when ρ is undefined at
        every lag that had enough data.
    """
    calculated_at = calculated_at or utc_now()
    best: CorrelationResult | None = None
    largest_n = 0
    scored = False

    for lag in sorted(config.correlation.lag_hours):
        outcome = correlate_at_lag(
            correlation_type, cause, effect, lag,
            config=config, time_range=time_range, calculated_at=calculated_at,
        )
        if isinstance(outcome, InsufficientData):
            largest_n = max(largest_n, outcome.current_sample_size)
            continue
        scored = True
        if outcome is None:
            continue
        # Strictly greater: on ties the earlier (smaller) lag is kept
        if best is None or abs(outcome.coefficient) > abs(best.coefficient):
            best = outcome

    if not scored:
        return InsufficientData(
            type=correlation_type,
            item1=cause.item_id,
            item2=effect.item_id,
            current_sample_size=largest_n,
            required_sample_size=config.thresholds.min_reportable,
        )

    if best is None:
        logger.debug(
            "Excluding %s pair %s → %s: zero variance at every lag",
            correlation_type.value, cause.item_id, effect.item_id,
        )
    return best
