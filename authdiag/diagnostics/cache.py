"""
Short-TTL memoization of diagnostic results.

One instance is created at application start and cleared on sign-out.
Entries live in a cachetools TTLCache driven by the injected clock: reads
never evict (an expired entry simply stops being returned), and every put()
purges expired entries before inserting.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cachetools import TTLCache

from authdiag.config import DIAGNOSTIC_CACHE_MAX_SIZE, DIAGNOSTIC_CACHE_TTL_SECONDS
from authdiag.diagnostics.types import DiagnosticResult
from authdiag.observability.telemetry import counter


@dataclass(frozen=True)
class CacheEntry:
    result: DiagnosticResult
    timestamp: float


class DiagnosticCache:
    def __init__(
        self,
        ttl_seconds: float = DIAGNOSTIC_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_size: int = DIAGNOSTIC_CACHE_MAX_SIZE,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: TTLCache[str, CacheEntry] = TTLCache(
            maxsize=max_size, ttl=ttl_seconds, timer=clock
        )
        # TTLCache is not thread-safe; put() mutates the link list during its purge
        self._lock = threading.Lock()

    def get(self, key: str) -> DiagnosticResult | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None:
            counter("auth.diagnostic_cache.hit")
            return entry.result
        counter("auth.diagnostic_cache.miss")
        return None

    def put(self, key: str, result: DiagnosticResult) -> None:
        """
        Store a result and purge expired entries.

        Side Effects:
            - Removes every entry whose TTL has run out
        """
        with self._lock:
            self._entries[key] = CacheEntry(result=result, timestamp=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        # Counts expired entries still waiting for the next purge
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            entries = len(self._entries)
            live = sum(1 for key in list(self._entries.keys()) if key in self._entries)
        return {"entries": entries, "live": live, "ttl_seconds": self.ttl_seconds}
