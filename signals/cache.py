"""Per-subscription memo of signal results.

Several checks read the same signal (``resource_graph:vms`` feeds three
of them), so the bus fetches it once per subscription and serves the
rest from here until the entry goes stale.
"""
from __future__ import annotations

import threading
import time
from typing import NamedTuple

from signals.types import SignalResult

CacheKey = tuple[str, str, str]


class _Entry(NamedTuple):
    result: SignalResult
    stored_at: float


class SignalCache:
    """Thread-safe; entries expire after ``default_ttl`` seconds unless the reader asks otherwise."""

    def __init__(self, default_ttl: int = 900):
        self.default_ttl = default_ttl
        self._entries: dict[CacheKey, _Entry] = {}
        self._mutex = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(signal_name: str, subscription_id: str, version: str) -> CacheKey:
        return signal_name, subscription_id.lower(), version

    def get(self, signal_name: str, subscription_id: str, version: str = "v1",
            freshness_seconds: int | None = None) -> SignalResult | None:
        key = self._key(signal_name, subscription_id, version)
        max_age = self.default_ttl if freshness_seconds is None else freshness_seconds
        with self._mutex:
            entry = self._entries.get(key)
            if entry is not None and time.monotonic() - entry.stored_at <= max_age:
                self.hits += 1
                return entry.result
            if entry is not None:
                del self._entries[key]
            self.misses += 1
            return None

    def put(self, signal_name: str, subscription_id: str, result: SignalResult, version: str = "v1") -> None:
        with self._mutex:
            self._entries[self._key(signal_name, subscription_id, version)] = _Entry(result, time.monotonic())

    def invalidate(self, signal_name: str | None = None) -> int:
        """Drop one signal's entries (every subscription), or everything. Returns how many went."""
        with self._mutex:
            doomed = [k for k in self._entries if signal_name is None or k[0] == signal_name]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    @property
    def size(self) -> int:
        return len(self._entries)

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "entries": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(100 * self.hits / lookups, 1) if lookups else 0.0,
        }
