"""Tests for insight memoization and event source versioning."""

from __future__ import annotations

from datetime import date

import pytest

from src.analytics.base import Event, EventKind
from src.analytics.cache import InsightCache
from src.analytics.config_loader import AnalyticsConfig
from src.analytics.engine import InsightEngine
from src.services.event_source import EventSource, InMemoryEventSource, event_content_hash
from src.analytics.tests.conftest import NOW, TEST_USER_ID, at


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInsightCache:
    def test_get_put(self) -> None:
        cache = InsightCache()
        assert cache.get("u1", "correlations", "30d", "v1") is None
        cache.put("u1", "correlations", "30d", "v1", {"x": 1})
        assert cache.get("u1", "correlations", "30d", "v1") == {"x": 1}
        assert cache.get("u1", "correlations", "30d", "v2") is None
        assert cache.get("u1", "trend", "30d", "v1") is None
        assert len(cache) == 1

    def test_entries_expire(self) -> None:
        clock = FakeClock()
        cache = InsightCache(ttl_seconds=60, clock=clock)
        cache.put("u1", "trend", "all", "v1", "value")
        clock.now += 59
        assert cache.get("u1", "trend", "all", "v1") == "value"
        clock.now += 1
        assert cache.get("u1", "trend", "all", "v1") is None
        assert len(cache) == 0

    def test_invalidate_one_user(self) -> None:
        cache = InsightCache()
        cache.put("u1", "trend", "all", "v", 1)
        cache.put("u1", "correlations", "7d", "v", 2)
        cache.put("u2", "trend", "all", "v", 3)
        assert cache.invalidate("u1") == 2
        assert cache.get("u2", "trend", "all", "v") == 3

    def test_invalidate_everything(self) -> None:
        cache = InsightCache()
        cache.put("u1", "trend", "all", "v", 1)
        cache.put("u2", "trend", "all", "v", 2)
        assert cache.invalidate() == 2
        assert len(cache) == 0

    def test_rejects_non_positive_ttl(self) -> None:
        with pytest.raises(ValueError):
            InsightCache(ttl_seconds=0)

    def test_default_ttl_is_one_hour(self) -> None:
        assert InsightCache().ttl_seconds == 3600

    def test_rejects_zero_maxsize(self) -> None:
        with pytest.raises(ValueError):
            InsightCache(maxsize=0)


class TestCacheBounds:
    def test_expired_entries_purged_on_write(self) -> None:
        clock = FakeClock()
        cache = InsightCache(ttl_seconds=10, clock=clock)
        for i in range(1000):
            cache.put("u1", "correlations", "30d", f"v{i}", i)
            clock.now += 1
        # only writes from the last ttl window survive
        assert len(cache) <= 10
        assert cache.get("u1", "correlations", "30d", "v999") == 999
        assert cache.get("u1", "correlations", "30d", "v0") is None

    def test_oldest_entry_evicted_at_maxsize(self) -> None:
        cache = InsightCache(maxsize=3)
        for i in range(5):
            cache.put(f"u{i}", "trend", "all", "v", i)
        assert len(cache) == 3
        assert cache.get("u0", "trend", "all", "v") is None
        assert cache.get("u1", "trend", "all", "v") is None
        assert cache.get("u4", "trend", "all", "v") == 4

    def test_rewrite_refreshes_position(self) -> None:
        cache = InsightCache(maxsize=2)
        cache.put("u1", "trend", "all", "v", 1)
        cache.put("u2", "trend", "all", "v", 2)
        cache.put("u1", "trend", "all", "v", 10)
        cache.put("u3", "trend", "all", "v", 3)
        assert cache.get("u1", "trend", "all", "v") == 10
        assert cache.get("u2", "trend", "all", "v") is None

    def test_maxsize_from_settings(self) -> None:
        from src.dependencies import get_insight_cache

        cache = get_insight_cache()
        assert cache is not None
        assert cache.maxsize == 1024


class TestEngineMemoization:
    def test_repeat_query_is_served_from_cache(
        self, dairy_source: InMemoryEventSource, analytics_config: AnalyticsConfig
    ) -> None:
        engine = InsightEngine(dairy_source, config=analytics_config, cache=InsightCache())
        first = engine.find_correlations(TEST_USER_ID, "30d", now=NOW)
        second = engine.find_correlations(TEST_USER_ID, "30d", now=NOW)
        assert second is first

    def test_new_events_change_the_key(
        self, dairy_source: InMemoryEventSource, analytics_config: AnalyticsConfig
    ) -> None:
        engine = InsightEngine(dairy_source, config=analytics_config, cache=InsightCache())
        first = engine.find_correlations(TEST_USER_ID, "30d", now=NOW)
        dairy_source.add(TEST_USER_ID, [Event("gluten", at(date(2026, 3, 20)), EventKind.FOOD)])
        second = engine.find_correlations(TEST_USER_ID, "30d", now=NOW)
        assert second is not first
        assert second.pairs_evaluated == first.pairs_evaluated + 1

    def test_config_override_changes_the_key(
        self, dairy_source: InMemoryEventSource, analytics_config: AnalyticsConfig
    ) -> None:
        engine = InsightEngine(dairy_source, config=analytics_config, cache=InsightCache())
        first = engine.find_correlations(TEST_USER_ID, "30d", now=NOW)
        strict = analytics_config.with_overrides(min_reportable_sample_size=40)
        second = engine.find_correlations(TEST_USER_ID, "30d", now=NOW, config=strict)
        assert second.results == []
        assert first.results

    def test_cached_and_fresh_results_match(
        self, dairy_source: InMemoryEventSource, analytics_config: AnalyticsConfig
    ) -> None:
        cached = InsightEngine(dairy_source, config=analytics_config, cache=InsightCache())
        fresh = InsightEngine(dairy_source, config=analytics_config)
        cached.find_correlations(TEST_USER_ID, "30d", now=NOW)
        assert (
            cached.find_correlations(TEST_USER_ID, "30d", now=NOW).results
            == fresh.find_correlations(TEST_USER_ID, "30d", now=NOW).results
        )


class TestInMemoryEventSource:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryEventSource(), EventSource)

    def test_filters_by_kind_and_day(self, dairy_source: InMemoryEventSource) -> None:
        events = dairy_source.get_events_by_date_range(
            TEST_USER_ID, EventKind.SYMPTOM, date(2026, 3, 3), date(2026, 3, 6)
        )
        # bloating on 3/3 and 3/6 (the malformed headache is on 3/2)
        assert [(e.item_id, e.day) for e in events] == [
            ("bloating", date(2026, 3, 3)),
            ("bloating", date(2026, 3, 6)),
        ]

    def test_version_changes_with_content(self) -> None:
        source = InMemoryEventSource()
        empty = source.data_version("u1")
        source.add("u1", [Event("dairy", NOW, EventKind.FOOD)])
        assert source.data_version("u1") != empty
        assert source.data_version("u2") == empty

    def test_hash_ignores_order(self) -> None:
        a = Event("dairy", NOW, EventKind.FOOD)
        b = Event("bloating", NOW, EventKind.SYMPTOM, 4.0)
        assert event_content_hash([a, b]) == event_content_hash([b, a])
