"""Event aggregation onto an aligned, zero-filled daily axis.

Raw events for one item become a ``TimeSeries`` with exactly one value per UTC
day in the analysis window.  Days without events are 0, never dropped, so two
series built over the same window always pair up one-to-one and the
correlation step sees "nothing happened" days as data.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from src.analytics.base import (
    FLARE_SEVERITY_ITEM,
    AggregationMode,
    Event,
    EventKind,
    SeriesAlignmentError,
    TimeRange,
    TimeSeries,
    to_utc,
    utc_now,
)
from src.analytics.config_loader import AnalyticsConfig

logger = logging.getLogger("flarewise.analytics.aggregator")


def resolve_window(
    time_range: TimeRange | str,
    now: datetime | None = None,
    all_time_lookback_days: int = 1825,
) -> tuple[date, date]:
    """Return the inclusive ``(start, end)`` UTC day window for a time range.

    ``7d`` ending today covers today and the six days before it.  ``all``
    looks back ``all_time_lookback_days``; the engine later clips that start to
    the first logged event.
    """
    end = to_utc(now or utc_now()).date()
    days = TimeRange(time_range).days or all_time_lookback_days
    return end - timedelta(days=days - 1), end


def _is_valid(event: Event) -> bool:
    if not event.item_id or not str(event.item_id).strip():
        return False
    if event.intensity is None:
        return True
    try:
        intensity = float(event.intensity)
    except (TypeError, ValueError):
        return False
    return math.isfinite(intensity) and intensity >= 0


def validate_events(events: Iterable[Event]) -> tuple[list[Event], int]:
    """Drop malformed events.

    An event is malformed when it has an empty item id or an intensity that
    is negative, NaN or infinite.

    Returns:
        (valid_events, skipped_count)
    """
    valid: list[Event] = []
    skipped = 0
    for event in events:
        if _is_valid(event):
            valid.append(event)
        else:
            skipped += 1
            logger.debug(
                "Skipping malformed %s event item=%r intensity=%r",
                event.kind.value, event.item_id, event.intensity,
            )
    return valid, skipped


def bucket_events(
    events: Iterable[Event],
    item_id: str,
    kind: EventKind,
    start: date,
    end: date,
    mode: AggregationMode = AggregationMode.COUNT,
) -> TimeSeries:
    """Collapse events into one value per day over ``[start, end]``.

    Events outside the window are ignored.

    Args:
        events:  Events for a single item.
        item_id: Item the series belongs to.
        kind:    Event kind of the item.
        start:   First day of the axis (inclusive).
        end:     Last day of the axis (inclusive).
        mode:    COUNT or MEAN_INTENSITY.

    Returns:
        A contiguous, zero-filled TimeSeries of ``(end - start).days + 1`` values.
    """
    n_days = (end - start).days + 1
    if n_days <= 0:
        raise ValueError(f"Window end {end} precedes start {start}")

    counts = [0] * n_days
    sums = [0.0] * n_days
    for event in events:
        offset = (event.day - start).days
        if not 0 <= offset < n_days:
            continue
        counts[offset] += 1
        sums[offset] += float(event.intensity) if event.intensity is not None else 1.0

    if mode is AggregationMode.COUNT:
        values = tuple(float(c) for c in counts)
    else:
        values = tuple(s / c if c else 0.0 for s, c in zip(sums, counts))

    return TimeSeries(item_id=item_id, kind=kind, start=start, values=values)


def aggregate_by_item(
    events: Iterable[Event],
    kind: EventKind,
    start: date,
    end: date,
    config: AnalyticsConfig,
) -> dict[str, TimeSeries]:
    """Build one aligned series per distinct item of ``kind``.

    Items are returned in sorted id order so downstream iteration is
    deterministic.
    """
    by_item: dict[str, list[Event]] = defaultdict(list)
    for event in events:
        if event.kind is kind:
            by_item[event.item_id].append(event)

    mode = config.correlation.aggregation_mode(kind)
    return {
        item_id: bucket_events(by_item[item_id], item_id, kind, start, end, mode)
        for item_id in sorted(by_item)
    }


def build_flare_series(
    flare_events: Iterable[Event],
    start: date,
    end: date,
    config: AnalyticsConfig,
) -> TimeSeries:
    """Build the single ``flare_severity`` effect series shared by every flare pair."""
    return bucket_events(
        (e for e in flare_events if e.kind is EventKind.FLARE),
        FLARE_SEVERITY_ITEM,
        EventKind.FLARE,
        start,
        end,
        config.correlation.aggregation_mode(EventKind.FLARE),
    )


def earliest_day(events: Iterable[Event]) -> date | None:
    return min((e.day for e in events), default=None)


def align(cause: TimeSeries, effect: TimeSeries) -> tuple[Sequence[float], Sequence[float]]:
    """Return the value arrays of two series that share a day axis.

    Raises:
        SeriesAlignmentError: If the series start on different days or have
            different lengths.  Both indicate an aggregation bug upstream.
    """
    if cause.start != effect.start or len(cause) != len(effect):
        raise SeriesAlignmentError(
            f"Series {cause.item_id!r} ({cause.start}, n={len(cause)}) and "
            f"{effect.item_id!r} ({effect.start}, n={len(effect)}) are not aligned"
        )
    return cause.values, effect.values
