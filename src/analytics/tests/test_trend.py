"""Tests for monthly flare bucketing and trend regression."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.analytics.base import Event, EventKind, TrendDirection
from src.analytics.trend import (
    MonthlyBucket,
    TrendLine,
    analyze_trend,
    bucket_flares_by_month,
    classify_trend,
    linear_regression,
    month_start,
)


def flares(counts: list[int], year: int = 2025, severity: float | None = 5.0) -> list[Event]:
    """``counts[i]`` flares in month i+1 of ``year``."""
    events = []
    for month, count in enumerate(counts, start=1):
        for n in range(count):
            ts = datetime(year, month, 1 + n, 12, tzinfo=timezone.utc)
            events.append(Event(f"flare_{month}_{n}", ts, EventKind.FLARE, severity))
    return events


class TestBucketing:
    def test_month_start(self) -> None:
        assert month_start(date(2026, 2, 17)) == date(2026, 2, 1)

    def test_buckets_are_chronological_and_non_empty(self, make_event) -> None:
        events = [
            make_event("f3", date(2026, 3, 14), EventKind.FLARE, 4.0),
            make_event("f1", date(2025, 11, 2), EventKind.FLARE, 8.0),
            make_event("f2", date(2025, 11, 20), EventKind.FLARE, 7.0),
        ]
        buckets = bucket_flares_by_month(events)
        assert [b.month for b in buckets] == [date(2025, 11, 1), date(2026, 3, 1)]
        assert [b.flare_count for b in buckets] == [2, 1]
        assert buckets[0].average_severity == pytest.approx(7.5)
        assert buckets[0].month_timestamp == datetime(2025, 11, 1, tzinfo=timezone.utc)

    def test_missing_severity_is_ignored_in_average(self, make_event) -> None:
        events = [
            make_event("f1", date(2026, 1, 2), EventKind.FLARE, 6.0),
            make_event("f2", date(2026, 1, 9), EventKind.FLARE),
            make_event("f3", date(2026, 2, 9), EventKind.FLARE),
        ]
        buckets = bucket_flares_by_month(events)
        assert buckets[0] == MonthlyBucket(date(2026, 1, 1), 2, 6.0)
        assert buckets[1].average_severity is None

    def test_average_severity_is_not_rounded(self, make_event) -> None:
        events = [
            make_event(f"f{i}", date(2026, 1, 2 + i), EventKind.FLARE, s)
            for i, s in enumerate([1.0, 1.0, 2.0])
        ]
        bucket = bucket_flares_by_month(events)[0]
        assert bucket.average_severity == pytest.approx(4 / 3, abs=1e-12)

    def test_non_flare_events_are_ignored(self, make_event) -> None:
        events = [make_event("dairy", date(2026, 1, 2), EventKind.FOOD)]
        assert bucket_flares_by_month(events) == []


class TestLinearRegression:
    def test_perfect_line(self) -> None:
        line = linear_regression([(0, 1), (1, 3), (2, 5)])
        assert line.slope == pytest.approx(2.0)
        assert line.intercept == pytest.approx(1.0)
        assert line.r_squared == pytest.approx(1.0)

    def test_partial_fit(self) -> None:
        line = linear_regression([(0, 1), (1, 2), (2, 4)])
        assert line.slope == pytest.approx(1.5)
        assert line.intercept == pytest.approx(5 / 6)
        assert 0.0 < line.r_squared < 1.0

    def test_flat_line(self) -> None:
        line = linear_regression([(0, 2), (1, 2), (2, 2)])
        assert line.slope == pytest.approx(0.0)
        assert line.r_squared == 1.0

    def test_too_few_points(self) -> None:
        with pytest.raises(ValueError):
            linear_regression([(0, 1)])

    def test_identical_x(self) -> None:
        with pytest.raises(ValueError):
            linear_regression([(1, 1), (1, 2), (1, 3)])

    def test_value_at(self) -> None:
        assert TrendLine(slope=-2.0, intercept=5.0).value_at(2) == pytest.approx(1.0)


class TestClassifyTrend:
    def test_deadband_is_stable(self) -> None:
        assert classify_trend(0.05) is TrendDirection.STABLE
        assert classify_trend(-0.09) is TrendDirection.STABLE

    def test_rising_flares_are_declining(self) -> None:
        assert classify_trend(0.1) is TrendDirection.DECLINING
        assert classify_trend(1.5) is TrendDirection.DECLINING

    def test_falling_flares_are_improving(self) -> None:
        assert classify_trend(-0.5) is TrendDirection.IMPROVING

    def test_custom_deadband(self) -> None:
        assert classify_trend(0.4, deadband=0.5) is TrendDirection.STABLE


class TestAnalyzeTrend:
    def test_improving(self, improving_flares: list[Event]) -> None:
        analysis = analyze_trend(improving_flares)
        assert [b.flare_count for b in analysis.data_points] == [5, 3, 1]
        assert analysis.trend_line.slope == pytest.approx(-2.0)
        assert analysis.trend_line.intercept == pytest.approx(5.0)
        assert analysis.trend_direction is TrendDirection.IMPROVING
        assert analysis.severity_trend_line.slope == pytest.approx(-2.0)
        assert analysis.severity_direction is TrendDirection.IMPROVING

    def test_declining(self) -> None:
        analysis = analyze_trend(flares([1, 2, 4]))
        assert analysis.trend_line.slope == pytest.approx(1.5)
        assert analysis.trend_direction is TrendDirection.DECLINING
        # Same severity every month
        assert analysis.severity_direction is TrendDirection.STABLE

    def test_stable(self) -> None:
        analysis = analyze_trend(flares([2, 2, 2, 2]))
        assert analysis.trend_direction is TrendDirection.STABLE

    @pytest.mark.parametrize("counts", [[], [4], [3, 1]])
    def test_fewer_than_three_months_is_insufficient(self, counts: list[int]) -> None:
        analysis = analyze_trend(flares(counts))
        assert analysis.trend_direction is TrendDirection.INSUFFICIENT_DATA
        assert analysis.severity_direction is TrendDirection.INSUFFICIENT_DATA
        assert analysis.trend_line == TrendLine()
        assert analysis.overlay() is None
        assert len(analysis.data_points) == len(counts)

    def test_min_buckets_is_configurable(self) -> None:
        analysis = analyze_trend(flares([3, 1]), min_buckets=2)
        assert analysis.trend_direction is TrendDirection.IMPROVING

    def test_severity_needs_enough_rated_months(self) -> None:
        analysis = analyze_trend(flares([1, 2, 3], severity=None))
        assert analysis.trend_direction is TrendDirection.DECLINING
        assert analysis.severity_direction is TrendDirection.INSUFFICIENT_DATA

    def test_severity_fit_uses_exact_means(self, make_event) -> None:
        monthly = {1: [1.0, 1.0, 2.0], 2: [2.0], 3: [2.0, 3.0, 3.0]}
        events = [
            make_event(f"f{m}_{i}", date(2026, m, 1 + i), EventKind.FLARE, s)
            for m, severities in monthly.items()
            for i, s in enumerate(severities)
        ]
        line = analyze_trend(events).severity_trend_line
        # means 4/3, 2, 8/3
        assert line.slope == pytest.approx(2 / 3, abs=1e-9)
        assert line.intercept == pytest.approx(4 / 3, abs=1e-9)

    def test_overlay_spans_first_to_last_bucket(self, improving_flares: list[Event]) -> None:
        start, end = analyze_trend(improving_flares).overlay()
        assert start[0] == 0
        assert start[1] == pytest.approx(5.0)
        assert end[0] == 2
        assert end[1] == pytest.approx(1.0)
