"""Insight engine entry points.

``InsightEngine`` ties the pipeline together for one query:

    EventSource ─▶ validate ─▶ aggregate (daily, zero-filled)
                 ─▶ correlate every (cause, effect) pair over the lag set
                 ─▶ classify / rank ─▶ report, feed, statistics

and, separately, flare history ─▶ monthly buckets ─▶ trend regression.

Every call recomputes from the source snapshot for the requested window.  The
optional ``InsightCache`` only short-circuits a recomputation whose key
(user, operation, range, data version) has already been answered.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable

from src.analytics.aggregator import (
    aggregate_by_item,
    build_flare_series,
    earliest_day,
    resolve_window,
    validate_events,
)
from src.analytics.base import (
    FLARE_SEVERITY_ITEM,
    CorrelationStrength,
    CorrelationType,
    Event,
    EventKind,
    TimeRange,
    TimeSeries,
    UnknownItemError,
    utc_now,
)
from src.analytics.cache import InsightCache
from src.analytics.config_loader import AnalyticsConfig, get_analytics_config
from src.analytics.correlation import (
    CorrelationResult,
    InsufficientData,
    correlate_at_lag,
    correlate_pair,
)
from src.analytics.prioritization import (
    filter_weak_correlations,
    get_top_insights,
    group_insights_by_type,
    separate_strong_correlations,
    sort_insights_by_priority,
)
from src.analytics.trend import TrendAnalysis, analyze_trend

if TYPE_CHECKING:
    from src.services.event_source import EventSource

logger = logging.getLogger("flarewise.analytics.engine")


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CorrelationReport:
    """Everything one correlation pass produced.

    Attributes:
        user_id:         Whose events were analyzed.
        time_range:      Requested window.
        window_start:    First day of the daily axis (clipped for ``all``).
        window_end:      Last day of the daily axis.
        results:         Reportable correlations, highest priority first.
        insufficient:    Pairs below the minimum sample size.
        undefined_pairs: Pairs excluded because ρ was undefined at every lag.
        skipped_records: Malformed events dropped before aggregation.
        pairs_evaluated: Distinct (cause, effect) pairs considered.
        calculated_at:   UTC timestamp of the pass.
    """

    user_id: str
    time_range: TimeRange
    window_start: date
    window_end: date
    results: list[CorrelationResult] = field(default_factory=list)
    insufficient: list[InsufficientData] = field(default_factory=list)
    undefined_pairs: int = 0
    skipped_records: int = 0
    pairs_evaluated: int = 0
    calculated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class InsightFeed:
    """Dashboard feed built from a CorrelationReport."""

    top_insights: list[CorrelationResult]
    by_type: dict[CorrelationType, list[CorrelationResult]]
    strong: list[CorrelationResult]
    moderate: list[CorrelationResult]
    insufficient: list[InsufficientData]
    report: CorrelationReport


@dataclass(frozen=True)
class AnalysisStatistics:
    """Summary counts for a correlation pass."""

    total_pairs: int
    significant_count: int
    insufficient_count: int
    undefined_count: int
    skipped_records: int
    by_type: dict[CorrelationType, int]
    by_strength: dict[CorrelationStrength, int]


def get_analysis_statistics(
    report: CorrelationReport, threshold: float = 0.3
) -> AnalysisStatistics:
    """Count a report's results by type and by strength.

    ``significant_count`` counts results with ``|ρ| >= threshold``.
    """
    significant = filter_weak_correlations(report.results, threshold)

    by_type = {t: len(group) for t, group in group_insights_by_type(significant).items()}
    by_strength = {s: 0 for s in CorrelationStrength}
    for result in significant:
        by_strength[result.strength] += 1

    return AnalysisStatistics(
        total_pairs=report.pairs_evaluated,
        significant_count=len(significant),
        insufficient_count=len(report.insufficient),
        undefined_count=report.undefined_pairs,
        skipped_records=report.skipped_records,
        by_type=by_type,
        by_strength=by_strength,
    )


def config_fingerprint(config: AnalyticsConfig) -> str:
    """Short digest of every setting that can change engine output."""
    parts = (
        config.version,
        config.thresholds,
        config.correlation.lag_hours,
        config.correlation.weak_threshold,
        config.correlation.top_insights,
        sorted((k.value, v.value) for k, v in config.correlation.aggregation.items()),
        config.trend,
        config.windows,
    )
    return hashlib.sha256(repr(parts).encode()).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class _Snapshot:
    """Validated events and the daily axis for one query."""

    start: date
    end: date
    events: dict[EventKind, list[Event]]
    skipped: int


class InsightEngine:
    """Correlation, trend and feed entry points over an EventSource.

    Args:
        source: Where events come from.
        config: Default analytics config; the bundled YAML when omitted.
                Every entry point also accepts a per-call ``config``.
        cache:  Optional memoization layer.
    """

    def __init__(
        self,
        source: EventSource,
        config: AnalyticsConfig | None = None,
        cache: InsightCache | None = None,
    ) -> None:
        self.source = source
        self.config = config or get_analytics_config()
        self.cache = cache

    # -- internals ----------------------------------------------------------

    def _snapshot(
        self,
        user_id: str,
        time_range: TimeRange,
        now: datetime | None,
        config: AnalyticsConfig,
        kinds: tuple[EventKind, ...] = tuple(EventKind),
    ) -> _Snapshot:
        start, end = resolve_window(
            time_range, now, config.windows.all_time_lookback_days
        )
        events: dict[EventKind, list[Event]] = {}
        skipped = 0
        for kind in kinds:
            valid, dropped = validate_events(
                self.source.get_events_by_date_range(user_id, kind, start, end)
            )
            events[kind] = valid
            skipped += dropped

        if time_range is TimeRange.ALL:
            first = earliest_day(e for group in events.values() for e in group)
            start = max(start, first) if first is not None else end

        if skipped:
            logger.info("Skipped %d malformed event(s) for user %s", skipped, user_id)
        return _Snapshot(start=start, end=end, events=events, skipped=skipped)

    def _effect_series(
        self, snapshot: _Snapshot, effect_kind: EventKind, config: AnalyticsConfig
    ) -> dict[str, TimeSeries]:
        if effect_kind is EventKind.FLARE:
            flares = snapshot.events.get(EventKind.FLARE, [])
            if not flares:
                return {}
            return {
                FLARE_SEVERITY_ITEM: build_flare_series(
                    flares, snapshot.start, snapshot.end, config
                )
            }
        return aggregate_by_item(
            snapshot.events.get(effect_kind, []),
            effect_kind,
            snapshot.start,
            snapshot.end,
            config,
        )

    def _memoized(
        self,
        user_id: str,
        operation: str,
        time_range: TimeRange,
        now: datetime | None,
        config: AnalyticsConfig,
        compute: Callable[[], Any],
    ) -> Any:
        if self.cache is None:
            return compute()
        end = resolve_window(time_range, now, config.windows.all_time_lookback_days)[1]
        version = (
            f"{self.source.data_version(user_id)}:{end.isoformat()}:"
            f"{config_fingerprint(config)}"
        )
        cached = self.cache.get(user_id, operation, time_range.value, version)
        if cached is not None:
            logger.debug("Cache hit: %s %s %s", user_id, operation, time_range.value)
            return cached
        value = compute()
        self.cache.put(user_id, operation, time_range.value, version, value)
        return value

    # -- entry points -------------------------------------------------------

    def find_correlations(
        self,
        user_id: str,
        time_range: TimeRange | str = TimeRange.LAST_30_DAYS,
        now: datetime | None = None,
        config: AnalyticsConfig | None = None,
    ) -> CorrelationReport:
        """Correlate every cause item against every effect over the window.

        Args:
            user_id:    Whose events to analyze.
            time_range: ``7d``, ``30d``, ``90d`` or ``all``.
            now:        Reference time for the window end (UTC now by default).
            config:     Per-call config; the engine's config by default.

        Returns:
            CorrelationReport with results ranked by priority.
        """
        time_range = TimeRange(time_range)
        config = config or self.config
        return self._memoized(
            user_id, "correlations", time_range, now, config,
            lambda: self._find_correlations(user_id, time_range, now, config),
        )

    def _find_correlations(
        self,
        user_id: str,
        time_range: TimeRange,
        now: datetime | None,
        config: AnalyticsConfig,
    ) -> CorrelationReport:
        calculated_at = now or utc_now()
        snapshot = self._snapshot(user_id, time_range, now, config)

        causes: dict[EventKind, dict[str, TimeSeries]] = {}
        effects: dict[EventKind, dict[str, TimeSeries]] = {}
        results: list[CorrelationResult] = []
        insufficient: list[InsufficientData] = []
        undefined = 0
        evaluated = 0

        for correlation_type in CorrelationType:
            cause_kind = correlation_type.cause_kind
            effect_kind = correlation_type.effect_kind
            if cause_kind not in causes:
                causes[cause_kind] = aggregate_by_item(
                    snapshot.events[cause_kind], cause_kind,
                    snapshot.start, snapshot.end, config,
                )
            if effect_kind not in effects:
                effects[effect_kind] = self._effect_series(snapshot, effect_kind, config)

            for cause in causes[cause_kind].values():
                for effect in effects[effect_kind].values():
                    evaluated += 1
                    outcome = correlate_pair(
                        correlation_type, cause, effect,
                        config=config, time_range=time_range,
                        calculated_at=calculated_at,
                    )
                    if outcome is None:
                        undefined += 1
                    elif isinstance(outcome, InsufficientData):
                        insufficient.append(outcome)
                    else:
                        results.append(outcome)

        report = CorrelationReport(
            user_id=user_id,
            time_range=time_range,
            window_start=snapshot.start,
            window_end=snapshot.end,
            results=sort_insights_by_priority(results),
            insufficient=insufficient,
            undefined_pairs=undefined,
            skipped_records=snapshot.skipped,
            pairs_evaluated=evaluated,
            calculated_at=calculated_at,
        )
        logger.info(
            "Correlations for %s [%s]: %d pairs, %d results, %d insufficient, %d undefined",
            user_id, time_range.value, evaluated, len(results), len(insufficient), undefined,
        )
        return report

    def calculate_pair_with_all_lags(
        self,
        user_id: str,
        correlation_type: CorrelationType | str,
        item1: str,
        item2: str,
        time_range: TimeRange | str = TimeRange.LAST_30_DAYS,
        now: datetime | None = None,
        config: AnalyticsConfig | None = None,
    ) -> list[CorrelationResult | InsufficientData]:
        """Correlate one pair at every lag candidate.

        Defined results come first, ordered by |ρ| descending (smaller lag
        first on ties), followed by lags without enough aligned days.  Lags
        where ρ is undefined are left out.

        Raises:
            UnknownItemError: If either item has no events in the window.
        """
        correlation_type = CorrelationType(correlation_type)
        time_range = TimeRange(time_range)
        config = config or self.config
        snapshot = self._snapshot(user_id, time_range, now, config)

        cause_kind = correlation_type.cause_kind
        causes = aggregate_by_item(
            [e for e in snapshot.events[cause_kind] if e.item_id == item1],
            cause_kind, snapshot.start, snapshot.end, config,
        )
        if item1 not in causes:
            raise UnknownItemError(
                f"No {cause_kind.value} events for {item1!r} in the {time_range.value} window"
            )
        effects = self._effect_series(snapshot, correlation_type.effect_kind, config)
        if item2 not in effects:
            raise UnknownItemError(
                f"No {correlation_type.effect_kind.value} events for {item2!r} "
                f"in the {time_range.value} window"
            )

        calculated_at = now or utc_now()
        defined: list[CorrelationResult] = []
        short: list[InsufficientData] = []
        for lag in sorted(config.correlation.lag_hours):
            outcome = correlate_at_lag(
                correlation_type, causes[item1], effects[item2], lag,
                config=config, time_range=time_range, calculated_at=calculated_at,
            )
            if isinstance(outcome, InsufficientData):
                short.append(outcome)
            elif outcome is not None:
                defined.append(outcome)

        defined.sort(key=lambda r: -abs(r.coefficient))
        return [*defined, *short]

    def analyze_flare_trend(
        self,
        user_id: str,
        time_range: TimeRange | str = TimeRange.ALL,
        now: datetime | None = None,
        config: AnalyticsConfig | None = None,
    ) -> TrendAnalysis:
        """Monthly flare frequency and severity trend over the window."""
        time_range = TimeRange(time_range)
        config = config or self.config

        def compute() -> TrendAnalysis:
            snapshot = self._snapshot(
                user_id, time_range, now, config, kinds=(EventKind.FLARE,)
            )
            analysis = analyze_trend(
                snapshot.events[EventKind.FLARE],
                min_buckets=config.trend.min_buckets,
                deadband=config.trend.slope_deadband,
            )
            logger.info(
                "Flare trend for %s [%s]: %d month(s), %s",
                user_id, time_range.value, len(analysis.data_points),
                analysis.trend_direction.value,
            )
            return analysis

        return self._memoized(user_id, "trend", time_range, now, config, compute)

    def build_insight_feed(
        self,
        user_id: str,
        time_range: TimeRange | str = TimeRange.LAST_30_DAYS,
        count: int | None = None,
        threshold: float | None = None,
        now: datetime | None = None,
        config: AnalyticsConfig | None = None,
    ) -> InsightFeed:
        """Ranked dashboard feed: top insights, per-type groups, strong/moderate split.

        Args:
            count:     Top insights to keep (config ``top_insights`` by default).
            threshold: Weak filter |ρ| cut-off (config ``weak_threshold`` by default).
        """
        config = config or self.config
        count = config.correlation.top_insights if count is None else count
        threshold = config.correlation.weak_threshold if threshold is None else threshold

        report = self.find_correlations(user_id, time_range, now, config)
        meaningful = filter_weak_correlations(report.results, threshold)
        partition = separate_strong_correlations(meaningful, config.thresholds.strong)

        return InsightFeed(
            top_insights=get_top_insights(report.results, count, threshold),
            by_type={
                t: sort_insights_by_priority(group)
                for t, group in group_insights_by_type(meaningful).items()
            },
            strong=partition.strong,
            moderate=partition.moderate,
            insufficient=report.insufficient,
            report=report,
        )

    def get_analysis_statistics(
        self,
        user_id: str,
        time_range: TimeRange | str = TimeRange.LAST_30_DAYS,
        now: datetime | None = None,
        config: AnalyticsConfig | None = None,
    ) -> AnalysisStatistics:
        config = config or self.config
        report = self.find_correlations(user_id, time_range, now, config)
        return get_analysis_statistics(report, config.correlation.weak_threshold)
