"""In-process memoization for computed insights.

Entries are keyed by ``(user_id, operation, time_range, data_version)`` and
expire after a TTL (one hour by default).  Expired entries are purged on every
write and the oldest entries are evicted beyond ``maxsize``.  A changed data
version is a different key, so a stale entry can only be served for an
unchanged snapshot.
The cache never alters results; a miss simply recomputes.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger("flarewise.analytics.cache")

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAXSIZE = 1024

CacheKey = tuple[str, str, str, str]


class InsightCache:
    """TTL cache for correlation reports, feeds and trend analyses.

    Usage::

        cache = InsightCache(ttl_seconds=600, maxsize=256)
        report = cache.get("user_1", "correlations", "30d", version)
        if report is None:
            report = compute()
            cache.put("user_1", "correlations", "30d", version, report)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAXSIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._ttl = ttl_seconds
        self._maxsize = maxsize
        self._clock = clock
        # oldest write first
        self._entries: OrderedDict[CacheKey, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def get(self, user_id: str, operation: str, time_range: str, data_version: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        key = (user_id, operation, time_range, data_version)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                logger.debug("Cache entry expired: %s/%s/%s", user_id, operation, time_range)
                return None
        return value

    def put(
        self, user_id: str, operation: str, time_range: str, data_version: str, value: Any
    ) -> None:
        key = (user_id, operation, time_range, data_version)
        with self._lock:
            now = self._clock()
            self._entries[key] = (now, value)
            self._entries.move_to_end(key)
            self._purge_expired(now)
            while len(self._entries) > self._maxsize:
                self._entries.popitem(last=False)

    def _purge_expired(self, now: float) -> None:
        # Caller holds the lock.
        while self._entries:
            stored_at, _ = next(iter(self._entries.values()))
            if now - stored_at < self._ttl:
                break
            self._entries.popitem(last=False)

    def invalidate(self, user_id: str | None = None) -> int:
        """Drop every entry for ``user_id``, or everything when None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if user_id is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                stale = [k for k in self._entries if k[0] == user_id]
                for k in stale:
                    del self._entries[k]
                removed = len(stale)
        if removed:
            logger.info("Invalidated %d cached insight(s) for %s", removed, user_id or "all users")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
