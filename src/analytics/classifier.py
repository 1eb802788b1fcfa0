"""Strength, confidence and significance classification for correlations.

All functions here are pure and total: any finite ρ and any n map to exactly
one bucket.  Results never store these buckets; they are recomputed from the
stored ``(coefficient, sample_size)`` on every read.

Buckets (defaults, overridable via analytics_config.yaml):
    strength     |ρ| >= 0.70  strong
                 |ρ| >= 0.30  moderate
                 otherwise    weak
    confidence   n >= 20      high
                 n >= 10      medium
                 otherwise    low  (but only reported when n >= min_reportable)

Significance is a heuristic confidence proxy, NOT a hypothesis test.  It uses
the usual t statistic for a correlation coefficient,
``t = |ρ| · sqrt((n − 2) / (1 − ρ²))``, and reads a two-tailed tail area off
the standard normal curve (``erfc(t / √2)``) instead of a Student-t table.
Smaller values mean a more credible relationship; the number is only meant for
ranking and display, not for p < 0.05 style decisions.
"""

from __future__ import annotations

import math

from src.analytics.base import CorrelationConfidence, CorrelationStrength

# ---------------------------------------------------------------------------
# Default thresholds
# ---------------------------------------------------------------------------

STRONG_THRESHOLD = 0.7
MODERATE_THRESHOLD = 0.3
HIGH_CONFIDENCE_SAMPLE = 20
MEDIUM_CONFIDENCE_SAMPLE = 10
MIN_REPORTABLE_SAMPLE = 3


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify_strength(
    coefficient: float,
    strong: float = STRONG_THRESHOLD,
    moderate: float = MODERATE_THRESHOLD,
) -> CorrelationStrength:
    """Map a correlation coefficient to a strength bucket by |ρ|."""
    magnitude = abs(coefficient)
    if magnitude >= strong:
        return CorrelationStrength.STRONG
    if magnitude >= moderate:
        return CorrelationStrength.MODERATE
    return CorrelationStrength.WEAK


def classify_confidence(
    sample_size: int,
    high: int = HIGH_CONFIDENCE_SAMPLE,
    medium: int = MEDIUM_CONFIDENCE_SAMPLE,
) -> CorrelationConfidence:
    """Map a sample size to a confidence bucket."""
    if sample_size >= high:
        return CorrelationConfidence.HIGH
    if sample_size >= medium:
        return CorrelationConfidence.MEDIUM
    return CorrelationConfidence.LOW


def is_reportable(sample_size: int, min_reportable: int = MIN_REPORTABLE_SAMPLE) -> bool:
    """True if a pair with ``sample_size`` aligned buckets may be emitted as a result."""
    return sample_size >= min_reportable


def samples_needed(current: int, required: int) -> int:
    """How many more aligned buckets a pair needs before it becomes reportable."""
    return max(required - current, 0)


def significance_proxy(coefficient: float, sample_size: int) -> float:
    """Heuristic significance for ``(ρ, n)`` in [0.0, 1.0] (lower = more credible).

    Returns 1.0 when n < 3 (no degrees of freedom left) and 0.0 for a perfect
    |ρ| = 1 relationship.
    """
    if sample_size < 3:
        return 1.0
    magnitude = min(abs(coefficient), 1.0)
    if magnitude >= 1.0:
        return 0.0
    residual = 1.0 - magnitude * magnitude
    if residual <= 0.0:
        return 0.0
    t = magnitude * math.sqrt((sample_size - 2) / residual)
    return min(max(math.erfc(t / math.sqrt(2.0)), 0.0), 1.0)
