"""
Adapter: in-memory TTL cache.

Thread-safe; each process keeps its own cache. Entries expire on
read, and every write sweeps expired entries. When ``max_entries``
is reached the oldest entry is evicted.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from apuracao.core.interfaces.cache import ICache


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache(ICache):
    """Simple in-memory cache with per-entry TTL and a size bound."""

    def __init__(
        self,
        default_ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10_000,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                self._data.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            # reinserting moves the key to the end of the eviction order
            self._data.pop(key, None)
            while len(self._data) >= self.max_entries:
                self._data.pop(next(iter(self._data)))
            self._data[key] = CacheEntry(value=value, expires_at=now + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._data.items() if entry.expires_at <= now]
        for key in expired:
            del self._data[key]
