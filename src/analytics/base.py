"""Enums and canonical data models for the Flarewise correlation engine.

Every event source hands the engine ``Event`` records, and every aggregation
step produces ``TimeSeries`` values on a contiguous, zero-filled daily axis.
These types are the single source of truth consumed by the correlation
calculator, the trend module, the prioritizer and the API layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Iterator

logger = logging.getLogger("flarewise.analytics")

# Item id used for the single flare-severity effect series
FLARE_SEVERITY_ITEM = "flare_severity"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventKind(str, Enum):
    """Category of a logged health event."""

    FOOD = "food"
    TRIGGER = "trigger"
    MEDICATION = "medication"
    SYMPTOM = "symptom"
    FLARE = "flare"


class AggregationMode(str, Enum):
    """How raw events collapse into one value per day bucket.

    COUNT           number of occurrences that day.
    MEAN_INTENSITY  mean intensity of that day's events (missing
                      intensity counts as presence, 1.0).
    """

    COUNT = "count"
    MEAN_INTENSITY = "mean_intensity"


class TimeRange(str, Enum):
    """Historical window an analysis is computed over."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL = "all"

    @property
    def days(self) -> int | None:
        """Window length in days, or None for the unbounded ``all`` range."""
        return _TIME_RANGE_DAYS[self]


_TIME_RANGE_DAYS: dict[TimeRange, int | None] = {
    TimeRange.LAST_7_DAYS: 7,
    TimeRange.LAST_30_DAYS: 30,
    TimeRange.LAST_90_DAYS: 90,
    TimeRange.ALL: None,
}


class CorrelationType(str, Enum):
    """The five (cause, effect) pair kinds the engine correlates."""

    FOOD_SYMPTOM = "food-symptom"
    TRIGGER_SYMPTOM = "trigger-symptom"
    MEDICATION_SYMPTOM = "medication-symptom"
    FOOD_FLARE = "food-flare"
    TRIGGER_FLARE = "trigger-flare"

    @property
    def cause_kind(self) -> EventKind:
        return _PAIR_KINDS[self][0]

    @property
    def effect_kind(self) -> EventKind:
        return _PAIR_KINDS[self][1]


_PAIR_KINDS: dict[CorrelationType, tuple[EventKind, EventKind]] = {
    CorrelationType.FOOD_SYMPTOM: (EventKind.FOOD, EventKind.SYMPTOM),
    CorrelationType.TRIGGER_SYMPTOM: (EventKind.TRIGGER, EventKind.SYMPTOM),
    CorrelationType.MEDICATION_SYMPTOM: (EventKind.MEDICATION, EventKind.SYMPTOM),
    CorrelationType.FOOD_FLARE: (EventKind.FOOD, EventKind.FLARE),
    CorrelationType.TRIGGER_FLARE: (EventKind.TRIGGER, EventKind.FLARE),
}


class CorrelationStrength(str, Enum):
    """Qualitative bucket for |ρ| (Cohen's guidelines)."""

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class CorrelationConfidence(str, Enum):
    """Qualitative bucket for the sample size n."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(str, Enum):
    """Direction of a flare-history regression slope.

    Higher flare frequency or severity is worse, so a positive slope is
    DECLINING and a negative slope is IMPROVING.
    """

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient-data"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AnalyticsError(Exception):
    """Base class for engine contract violations."""


class SeriesAlignmentError(AnalyticsError, ValueError):
    """Raised when two series handed to the correlation step do not share an axis."""


class UnknownItemError(AnalyticsError, LookupError):
    """Raised when a requested item has no events in the analysis window."""


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Canonical models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Event:
    """A single immutable, externally sourced health event.

    Attributes:
        item_id:   Food / trigger / medication id, symptom name or flare id.
        timestamp: When the event happened.  Naive values are UTC.
        kind:      Event category.
        intensity: Optional severity / dose.  For flares, the peak severity.
    """

    item_id: str
    timestamp: datetime
    kind: EventKind
    intensity: float | None = None

    @property
    def day(self) -> date:
        """UTC calendar day this event is bucketed into."""
        return to_utc(self.timestamp).date()


@dataclass(frozen=True)
class TimeSeries:
    """Daily values for one item over a contiguous, zero-filled axis.

    ``values[i]`` belongs to ``start + i days``.  Two series built over the
    same window always have equal length.
    """

    item_id: str
    kind: EventKind
    start: date
    values: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.values)

    @property
    def end(self) -> date:
        return self.start + timedelta(days=max(len(self.values) - 1, 0))

    def buckets(self) -> Iterator[tuple[date, float]]:
        for offset, value in enumerate(self.values):
            yield self.start + timedelta(days=offset), value
