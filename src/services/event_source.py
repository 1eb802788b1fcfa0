"""Event sources the insight engine reads from.

The engine never owns persistence.  It asks an ``EventSource`` for one kind of
event over an inclusive UTC day range and treats the answer as an immutable
snapshot.  ``data_version`` identifies that snapshot so memoized results can be
reused until the user's data changes.

``InMemoryEventSource`` backs the HTTP surface (events arrive in the request
body) and the test suite.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Protocol, runtime_checkable

from src.analytics.base import Event, EventKind, to_utc

logger = logging.getLogger("flarewise.services.event_source")


@runtime_checkable
class EventSource(Protocol):
    """Read-only access to a user's logged events."""

    def get_events_by_date_range(
        self, user_id: str, kind: EventKind, start: date, end: date
    ) -> list[Event]:
        """Events of ``kind`` whose UTC day falls in ``[start, end]``."""
        ...

    def data_version(self, user_id: str) -> str:
        """Opaque token that changes whenever the user's events change."""
        ...


def event_content_hash(events: Iterable[Event]) -> str:
    """SHA-256 digest of a canonical, order-independent rendering of ``events``."""
    rows = sorted(
        (
            e.kind.value,
            e.item_id,
            to_utc(e.timestamp).isoformat(),
            None if e.intensity is None else repr(float(e.intensity)),
        )
        for e in events
    )
    canonical = json.dumps(rows, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


class InMemoryEventSource:
    """Event source over events already held in memory.

    Usage::

        source = InMemoryEventSource.from_events("user_1", events)
        engine = InsightEngine(source)
    """

    def __init__(self) -> None:
        self._events: dict[str, list[Event]] = defaultdict(list)
        self._versions: dict[str, str] = {}

    @classmethod
    def from_events(cls, user_id: str, events: Iterable[Event]) -> InMemoryEventSource:
        source = cls()
        source.add(user_id, events)
        return source

    def add(self, user_id: str, events: Iterable[Event]) -> None:
        """Append events for a user; the user's data version changes."""
        self._events[user_id].extend(events)
        self._versions.pop(user_id, None)

    def clear(self, user_id: str) -> None:
        self._events.pop(user_id, None)
        self._versions.pop(user_id, None)

    def get_events_by_date_range(
        self, user_id: str, kind: EventKind, start: date, end: date
    ) -> list[Event]:
        events = [
            e
            for e in self._events.get(user_id, ())
            if e.kind is kind and start <= e.day <= end
        ]
        events.sort(key=lambda e: to_utc(e.timestamp))
        return events

    def data_version(self, user_id: str) -> str:
        version = self._versions.get(user_id)
        if version is None:
            version = event_content_hash(self._events.get(user_id, ()))
            self._versions[user_id] = version
        return version

    def __len__(self) -> int:
        return sum(len(events) for events in self._events.values())
