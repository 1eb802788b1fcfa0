"""Insight prioritization for the dashboard feed.

Ranks correlation results by ``|ρ| · ln(n)``: a strong coefficient backed by
more aligned days outranks an equally strong one seen only a handful of times.
Filtering, grouping and partitioning helpers never mutate their input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from src.analytics.base import CorrelationType
from src.analytics.correlation import CorrelationResult


@dataclass(frozen=True)
class CorrelationPartition:
    """Strong and moderate results, split for the two dashboard sections."""

    strong: list[CorrelationResult] = field(default_factory=list)
    moderate: list[CorrelationResult] = field(default_factory=list)


def priority_score(result: CorrelationResult) -> float:
    """Return ``|ρ| · ln(n)`` for ``n >= 2``, otherwise ``|ρ|``."""
    magnitude = abs(result.coefficient)
    if result.sample_size < 2:
        return magnitude
    return magnitude * math.log(result.sample_size)


def sort_insights_by_priority(results: Iterable[CorrelationResult]) -> list[CorrelationResult]:
    """Sort by priority score descending, then |ρ| descending.

    The sort is stable, so fully tied results keep their input order.
    """
    return sorted(
        results,
        key=lambda r: (-priority_score(r), -abs(r.coefficient)),
    )


def group_insights_by_type(
    results: Iterable[CorrelationResult],
) -> dict[CorrelationType, list[CorrelationResult]]:
    """Bucket results by correlation type.

    Every CorrelationType is present in the returned dict, empty or not.
    """
    grouped: dict[CorrelationType, list[CorrelationResult]] = {t: [] for t in CorrelationType}
    for result in results:
        grouped[result.type].append(result)
    return grouped


def filter_weak_correlations(
    results: Iterable[CorrelationResult], threshold: float = 0.3
) -> list[CorrelationResult]:
    """Keep results with ``|ρ| >= threshold``."""
    return [r for r in results if abs(r.coefficient) >= threshold]


def get_top_insights(
    results: Sequence[CorrelationResult],
    count: int = 5,
    threshold: float = 0.3,
) -> list[CorrelationResult]:
    """Filter out weak results, rank the rest and keep the first ``count``."""
    if count <= 0:
        return []
    return sort_insights_by_priority(filter_weak_correlations(results, threshold))[:count]


def separate_strong_correlations(
    results: Iterable[CorrelationResult],
    strong_threshold: float | None = None,
) -> CorrelationPartition:
    """Split results into ``strong`` (|ρ| >= threshold) and everything else.

    Every input lands in exactly one list; the caller is expected to have
    filtered weak results already, so the remainder is labelled ``moderate``.
    Both lists are sorted by priority.

    Args:
        results:          Correlation results.
        strong_threshold: Cut-off for ``strong``.  Defaults to each result's
                          own classifier threshold, matching ``result.strength``.
    """
    strong: list[CorrelationResult] = []
    moderate: list[CorrelationResult] = []
    for result in results:
        cutoff = result.thresholds.strong if strong_threshold is None else strong_threshold
        if abs(result.coefficient) >= cutoff:
            strong.append(result)
        else:
            moderate.append(result)
    return CorrelationPartition(
        strong=sort_insights_by_priority(strong),
        moderate=sort_insights_by_priority(moderate),
    )
