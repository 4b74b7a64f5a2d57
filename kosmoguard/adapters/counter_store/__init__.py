"""Counter store adapters.

This package provides a small abstraction layer so development and tests
can run on an in-memory store while production shares counters through
Redis, without changing the services that use them.
"""

from __future__ import annotations

from kosmoguard.adapters.counter_store.base import AbstractCounterStore
from kosmoguard.adapters.counter_store.in_memory import InMemoryCounterStore
from kosmoguard.adapters.counter_store.redis_store import RedisCounterStore
from kosmoguard.core.config import RateLimitSettings
from kosmoguard.core.errors import ValidationAppError


def build_counter_store(rate_limit_settings: RateLimitSettings) -> AbstractCounterStore:
    """Create the counter store selected by ``RATE_LIMIT_BACKEND``.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """

    backend = rate_limit_settings.backend.lower()
    if backend == "memory":
        return InMemoryCounterStore()
    if backend == "redis":
        return RedisCounterStore.from_url(
            rate_limit_settings.redis_url,
            timeout_seconds=rate_limit_settings.redis_timeout_seconds,
        )
    raise ValidationAppError(
        code="unsupported_counter_backend",
        message=f"Unsupported counter store backend: {rate_limit_settings.backend}",
        details={"hint": "Set RATE_LIMIT_BACKEND to 'memory' or 'redis'"},
    )


__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "build_counter_store",
]
