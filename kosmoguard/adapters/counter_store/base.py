"""Counter store interface.

Rate limiting, abuse tracking and security flags all depend on this
abstraction rather than on a concrete backend, so the in-memory store used
in development and tests can be swapped for Redis without touching callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Key/value store of integer counters with a per-key TTL.

    Implementations must treat an entry whose expiry is at or before "now"
    as absent, and must make ``increment`` atomic with respect to
    concurrent callers.
    """

    @abstractmethod
    def get(self, key: str) -> int | None:
        """Return the current value for ``key`` or None if absent/expired."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` expiring ``ttl_seconds`` from now."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str, ttl_seconds: int, *, reset_ttl: bool = True) -> int:
        """Atomically increment ``key`` (initialising it to 1) and return the new value.

        Args:
            key: Counter key.
            ttl_seconds: Lifetime applied to the counter.
            reset_ttl: When True the TTL is re-armed to ``now + ttl_seconds``
                on every call (sliding window). When False the TTL is only
                set when the counter is created (fixed window).

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    def ttl(self, key: str) -> int | None:
        """Return whole seconds (rounded up) until ``key`` expires, or None."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    def has(self, key: str) -> bool:
        return self.get(key) is not None
