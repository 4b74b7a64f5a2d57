"""Escalation of repeated rate limit violations.

Every violation bumps a rolling 24h counter for the actor. Once the counter
reaches the threshold the actor is flagged as suspicious, which the health
data guard turns into extra friction until the flag expires.
"""

from __future__ import annotations

import logging

from kosmoguard.adapters.counter_store.base import AbstractCounterStore
from kosmoguard.core.audit import AuditLogger, salted_hash
from kosmoguard.core.errors import CounterStoreUnavailableError
from kosmoguard.services.security_flags import SecurityFlagService
from kosmoguard.services.signature import resolve_actor_identity

logger = logging.getLogger(__name__)

ABUSE_PREFIX = "abuse_check:"


class AbuseEscalator:
    """Counts violations per actor and raises the suspicious flag.

    Args:
        store: Counter store holding the violation counters.
        flags: Capability used to set the suspicious flag.
        audit: Audit logger receiving the escalation alert.
        threshold: Violations within ``window_seconds`` that flag an actor.
        window_seconds: Rolling window, re-armed on each violation.
        flag_ttl_seconds: Lifetime of the suspicious flag.
        fail_open: Report zero violations instead of raising when the
            store is unreachable.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        flags: SecurityFlagService,
        audit: AuditLogger,
        *,
        threshold: int = 5,
        window_seconds: int = 24 * 60 * 60,
        flag_ttl_seconds: int = 24 * 60 * 60,
        fail_open: bool = True,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be >= 1")

        self._fail_open = fail_open
        self._store = store
        self._flags = flags
        self._audit = audit
        self._threshold = threshold
        self._window_seconds = window_seconds
        self._flag_ttl_seconds = flag_ttl_seconds

    def violations(self, user_id: int | str | None, ip: str | None) -> int:
        """Current 24h violation count; 0 during a store outage when failing open."""

        actor = resolve_actor_identity(user_id, ip)
        try:
            return self._store.get(ABUSE_PREFIX + actor) or 0
        except CounterStoreUnavailableError as exc:
            logger.error(
                "abuse.read_failed",
                extra={"fail_open": self._fail_open, "error_code": exc.code},
            )
            if not self._fail_open:
                raise
            return 0

    def record_violation(self, user_id: int | str | None, ip: str | None, limiter_name: str) -> None:
        """Record one rate limit violation; never raises into the request path."""

        actor = resolve_actor_identity(user_id, ip)
        try:
            count = self._store.increment(ABUSE_PREFIX + actor, self._window_seconds)
            if count >= self._threshold:
                self._flags.flag_suspicious(actor, self._flag_ttl_seconds)
        except CounterStoreUnavailableError as exc:
            logger.error(
                "abuse.record_failed",
                extra={"limiter": limiter_name, "error_code": exc.code},
            )
            return

        if count < self._threshold:
            logger.debug("abuse.violation_counted", extra={"actor": actor, "count_24h": count})
            return

        self._audit.log(
            "security",
            logging.CRITICAL,
            "security.abuse_detected",
            {
                "user_id": user_id,
                "ip_hash": salted_hash(ip),
                "abuse_count_24h": count,
                "limiter": limiter_name,
                "action_required": "manual_review",
            },
        )
