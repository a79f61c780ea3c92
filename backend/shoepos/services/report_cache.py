# Overview: In-process TTL cache for report results.

from __future__ import annotations

import threading
import time
from typing import Any


REPORTS_PREFIX = "reports:"


class ReportCache:
    """
    Minimal get/set/invalidate cache.

    Entries expire lazily on read. Keys are plain strings; callers namespace
    them (e.g. "reports:sales:daily:...") so a prefix invalidation can drop a
    whole family at once. Safe to share between request threads and the
    background import runner.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def invalidate(self, prefix: str | None = None) -> int:
        """Drop every key (or every key starting with prefix). Returns the count removed."""
        with self._lock:
            if prefix is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)


report_cache = ReportCache()


def invalidate_reports() -> None:
    """Called after any committed stock or sales movement."""
    report_cache.invalidate(REPORTS_PREFIX)
