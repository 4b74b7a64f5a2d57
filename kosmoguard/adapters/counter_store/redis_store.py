"""Redis-backed counter store shared by every worker process.

``increment`` runs INCR and EXPIRE inside one MULTI/EXEC transaction, so
the counter and its TTL change together even under concurrent requests.

Fixed windows arm the TTL with ``EXPIRE ... NX``, which requires Redis
server 7.0 or newer. Older servers reject the command, so every fixed-window
increment would surface as ``CounterStoreUnavailableError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import redis

from kosmoguard.adapters.counter_store.base import AbstractCounterStore
from kosmoguard.core.errors import CounterStoreUnavailableError

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store on top of a synchronous ``redis.Redis`` client."""

    def __init__(self, client: redis.Redis, *, key_prefix: str = "kosmoguard:") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float = 0.5) -> "RedisCounterStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        return cls(client)

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as exc:
            logger.error(
                "counter_store.redis_error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise CounterStoreUnavailableError(
                code="counter_store_unavailable",
                message="Rate limit storage is temporarily unavailable",
                details={"backend": "redis"},
            ) from exc

    def get(self, key: str) -> int | None:
        with self._translate_errors("get"):
            value = self._client.get(self._k(key))
        return int(value) if value is not None else None

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        with self._translate_errors("put"):
            self._client.set(self._k(key), value, ex=ttl_seconds)

    def increment(self, key: str, ttl_seconds: int, *, reset_ttl: bool = True) -> int:
        full_key = self._k(key)
        with self._translate_errors("increment"):
            pipe = self._client.pipeline(transaction=True)
            pipe.incr(full_key)
            if reset_ttl:
                pipe.expire(full_key, ttl_seconds)
            else:
                # NX: only arm the TTL when the counter was just created
                pipe.expire(full_key, ttl_seconds, nx=True)
            count, _ = pipe.execute()
        return int(count)

    def ttl(self, key: str) -> int | None:
        with self._translate_errors("ttl"):
            remaining = self._client.ttl(self._k(key))
        # -2: missing key, -1: key without expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    def delete(self, key: str) -> None:
        with self._translate_errors("delete"):
            self._client.delete(self._k(key))
