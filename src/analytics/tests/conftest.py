"""Shared fixtures and event scenarios for insight engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable

import pytest

from src.analytics.base import CorrelationType, Event, EventKind, TimeRange
from src.analytics.config_loader import AnalyticsConfig, load_analytics_config
from src.analytics.correlation import CorrelationResult
from src.services.event_source import InMemoryEventSource

# Canonical test user and reference time
TEST_USER_ID = "user_test_0001"
NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)

# First day of the 30d window ending at NOW
WINDOW_START = date(2026, 3, 2)


def at(day: date, hour: int = 9) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def analytics_config() -> AnalyticsConfig:
    """Load the real analytics config for tests."""
    return load_analytics_config()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@pytest.fixture
def make_event() -> Callable[..., Event]:
    def _make(
        item_id: str,
        day: date,
        kind: EventKind,
        intensity: float | None = None,
        hour: int = 9,
    ) -> Event:
        return Event(item_id=item_id, timestamp=at(day, hour), kind=kind, intensity=intensity)

    return _make


@pytest.fixture
def make_result() -> Callable[..., CorrelationResult]:
    def _make(
        coefficient: float,
        sample_size: int = 30,
        type: CorrelationType = CorrelationType.FOOD_SYMPTOM,
        item1: str = "dairy",
        item2: str = "bloating",
        lag_hours: int = 0,
    ) -> CorrelationResult:
        return CorrelationResult(
            type=type,
            item1=item1,
            item2=item2,
            coefficient=coefficient,
            significance=0.0,
            sample_size=sample_size,
            lag_hours=lag_hours,
            time_range=TimeRange.LAST_30_DAYS,
            calculated_at=NOW,
        )

    return _make


# ---------------------------------------------------------------------------
# Scenarios (30d window 2026-03-02 .. 2026-03-31, day index i = 0..29)
# ---------------------------------------------------------------------------


@pytest.fixture
def dairy_events() -> list[Event]:
    """Dairy every third day, bloating (severity 6) the following day.

    Also logs water every day (a constant series) and one malformed symptom
    with a negative intensity.
    """
    events: list[Event] = []
    for i in range(30):
        day = WINDOW_START + timedelta(days=i)
        events.append(Event("water", at(day, 8), EventKind.FOOD))
        if i % 3 == 0:
            events.append(Event("dairy", at(day, 12), EventKind.FOOD))
            events.append(
                Event("bloating", at(day + timedelta(days=1), 10), EventKind.SYMPTOM, 6.0)
            )
    events.append(Event("headache", at(WINDOW_START), EventKind.SYMPTOM, -1.0))
    return events


@pytest.fixture
def sleep_flare_events() -> list[Event]:
    """Poor sleep every fourth day, a severity-7 flare two days later."""
    events: list[Event] = []
    for i in range(0, 30, 4):
        day = WINDOW_START + timedelta(days=i)
        events.append(Event("poor_sleep", at(day, 23), EventKind.TRIGGER))
        if i + 2 < 30:
            events.append(
                Event(f"flare_{i}", at(day + timedelta(days=2), 7), EventKind.FLARE, 7.0)
            )
    return events


@pytest.fixture
def dairy_source(dairy_events: list[Event]) -> InMemoryEventSource:
    return InMemoryEventSource.from_events(TEST_USER_ID, dairy_events)


@pytest.fixture
def improving_flares() -> list[Event]:
    """Five flares in January, three in February, one in March 2026.

    Peak severity falls 8 → 6 → 4 month over month.
    """
    events: list[Event] = []
    for month, count, severity in ((1, 5, 8.0), (2, 3, 6.0), (3, 1, 4.0)):
        for n in range(count):
            events.append(
                Event(f"flare_{month}_{n}", at(date(2026, month, 1 + n * 3)), EventKind.FLARE, severity)
            )
    return events
