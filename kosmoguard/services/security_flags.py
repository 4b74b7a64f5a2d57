"""Security flags shared between the abuse escalator and access guards.

Flags are plain TTL'd markers in the counter store. Nothing clears a
suspicious flag early: it only expires.

Reads follow the limiter's outage policy. When the store is unreachable and
``fail_open`` is set, a flag reads as absent and the outage is logged;
otherwise the store error propagates. Writes always propagate.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from kosmoguard.adapters.counter_store.base import AbstractCounterStore
from kosmoguard.core.errors import CounterStoreUnavailableError

logger = logging.getLogger(__name__)

SUSPICIOUS_PREFIX = "security_flag:suspicious:"
ACCOUNT_PREFIX = "security_flag:account:"

T = TypeVar("T")


class SecurityFlagService:
    """Read/write access to per-actor security flags.

    Actors are identified by the strings produced by
    ``resolve_actor_identity`` (``user:42``, ``ip:<sha256>``).
    """

    def __init__(self, store: AbstractCounterStore, *, fail_open: bool = True) -> None:
        self._store = store
        self._fail_open = fail_open

    def _read(self, read: Callable[[str], T], key: str, default: T) -> T:
        try:
            return read(key)
        except CounterStoreUnavailableError as exc:
            logger.error(
                "security_flag.store_unavailable",
                extra={"flag": key, "fail_open": self._fail_open, "error_code": exc.code},
            )
            if not self._fail_open:
                raise
            return default

    def flag_suspicious(self, actor: str, ttl_seconds: int) -> None:
        self._store.put(SUSPICIOUS_PREFIX + actor, 1, ttl_seconds)
        logger.info("security_flag.suspicious_set", extra={"actor": actor, "ttl_s": ttl_seconds})

    def is_suspicious(self, actor: str) -> bool:
        return self._read(self._store.has, SUSPICIOUS_PREFIX + actor, False)

    def suspicious_ttl(self, actor: str) -> int | None:
        return self._read(self._store.ttl, SUSPICIOUS_PREFIX + actor, None)

    def flag_account(self, actor: str, ttl_seconds: int) -> None:
        self._store.put(ACCOUNT_PREFIX + actor, 1, ttl_seconds)
        logger.info("security_flag.account_set", extra={"actor": actor, "ttl_s": ttl_seconds})

    def is_account_flagged(self, actor: str) -> bool:
        return self._read(self._store.has, ACCOUNT_PREFIX + actor, False)

    def clear_account_flag(self, actor: str) -> None:
        self._store.delete(ACCOUNT_PREFIX + actor)
        logger.info("security_flag.account_cleared", extra={"actor": actor})
