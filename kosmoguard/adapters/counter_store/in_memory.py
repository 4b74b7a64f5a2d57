"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limits.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from kosmoguard.adapters.counter_store.base import AbstractCounterStore

logger = logging.getLogger(__name__)


@dataclass
class CounterEntry:
    """A counter value together with its absolute expiry (UNIX seconds)."""

    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Dictionary-backed counter store with lazy TTL expiry.

    Expired entries are dropped when they are read, and a full purge runs
    every ``purge_every`` writes so abandoned keys do not accumulate.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        purge_every: int = 1024,
    ) -> None:
        if purge_every < 1:
            raise ValueError("purge_every must be >= 1")

        self._clock = clock
        self._purge_every = purge_every
        self._writes = 0
        self._lock = threading.RLock()
        self._entries: dict[str, CounterEntry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(entries={len(self._entries)})"

    def _live_entry_locked(self, key: str, now: float) -> CounterEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def _after_write_locked(self, now: float) -> None:
        self._writes += 1
        if self._writes % self._purge_every:
            return
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("counter_store.purged", extra={"purged": len(expired)})

    def get(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return entry.count if entry else None

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            now = self._clock()
            self._entries[key] = CounterEntry(count=value, expires_at=now + ttl_seconds)
            self._after_write_locked(now)

    def increment(self, key: str, ttl_seconds: int, *, reset_ttl: bool = True) -> int:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            if entry is None:
                entry = CounterEntry(count=0, expires_at=now + ttl_seconds)
                self._entries[key] = entry
            entry.count += 1
            if reset_ttl:
                entry.expires_at = now + ttl_seconds
            self._after_write_locked(now)
            return entry.count

    def ttl(self, key: str) -> int | None:
        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            if entry is None:
                return None
            return max(1, int(math.ceil(entry.expires_at - now)))

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._writes = 0
