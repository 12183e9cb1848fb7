"""In-memory TTL counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, which is what makes
  increment_with_expiry atomic here.
- Expired entries are evicted lazily, on access and when a new counter is
  created. Live counters are never evicted: when max_entries live counters
  exist, creating another raises StoreUnavailableError
  (code "store_capacity_exhausted") and the throttle's failure mode decides.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from throttle.adapters.store.base import AbstractAsyncCounterStore, AbstractCounterStore
from throttle.core.errors import InvalidConfigurationError, StoreUnavailableError
from throttle.utils.keys import hash_throttle_key

logger = logging.getLogger(__name__)


@dataclass
class CounterItem:
    """Container for a counter with expiration metadata."""

    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Thread-safe, in-memory counter store with TTL and optional capacity bound.

    Attributes:
        max_entries: Maximum number of live counters (None for unlimited).
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise InvalidConfigurationError(
                code="store_invalid_capacity",
                message="max_entries must be >= 1",
                details={"field": "max_entries", "actual_value": max_entries},
            )

        self._max_entries = max_entries
        self._clock = clock
        self._store: dict[str, CounterItem] = {}
        self._lock = threading.RLock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCounterStore(max_entries={self._max_entries}, "
            f"size={len(self._store)}, evictions={self._evictions})"
        )

    def get_count(self, key: str) -> int | None:
        with self._lock:
            item = self._get_live_locked(key)
            return item.count if item else None

    def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        with self._lock:
            item = self._get_live_locked(key)
            if item is None:
                self._evict_expired_locked()
                self._ensure_capacity_locked(key)
                item = CounterItem(count=0, expires_at=self._clock() + expiry_seconds)
                self._store[key] = item
            item.count += 1
            return item.count

    def ttl(self, key: str) -> float | None:
        with self._lock:
            item = self._get_live_locked(key)
            if item is None:
                return None
            return max(0.0, item.expires_at - self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all counters and reset eviction metrics."""

        with self._lock:
            self._store.clear()
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight store metrics without exposing keys."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "evictions": self._evictions,
            }

    def _get_live_locked(self, key: str) -> CounterItem | None:
        item = self._store.get(key)
        if item is None:
            return None
        if self._is_expired(item):
            self._evict_single(key)
            return None
        return item

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _ensure_capacity_locked(self, key: str) -> None:
        if self._max_entries is None or len(self._store) < self._max_entries:
            return

        key_hash = hash_throttle_key(key)
        logger.warning(
            "store.memory.capacity_exhausted",
            extra={"key_hash": key_hash, "max_entries": self._max_entries},
        )
        raise StoreUnavailableError(
            code="store_capacity_exhausted",
            message=f"In-memory store holds {self._max_entries} live counters",
            details={"backend": "memory", "operation": "incr", "key_hash": key_hash},
        )

    def _is_expired(self, item: CounterItem) -> bool:
        return self._clock() >= item.expires_at


class AsyncInMemoryCounterStore(AbstractAsyncCounterStore):
    """Coroutine facade over an InMemoryCounterStore.

    Operations never block on I/O, so they run inline on the event loop.
    """

    def __init__(self, store: InMemoryCounterStore | None = None) -> None:
        self.store = store or InMemoryCounterStore()

    async def get_count(self, key: str) -> int | None:
        return self.store.get_count(key)

    async def increment_with_expiry(self, key: str, expiry_seconds: float) -> int:
        return self.store.increment_with_expiry(key, expiry_seconds)

    async def ttl(self, key: str) -> float | None:
        return self.store.ttl(key)

    async def delete(self, key: str) -> None:
        self.store.delete(key)
