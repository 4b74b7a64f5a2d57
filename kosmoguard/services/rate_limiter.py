"""Counter-based request rate limiter.

Policy: check-then-increment. A request is rejected, without touching the
counter, once the stored count has reached ``max_attempts``. Accepted
requests increment the counter through the store's atomic primitive.

With ``sliding=True`` (the api limiter) every accepted request re-arms the
counter TTL to ``now + window``, so sustained traffic below the limit keeps
extending the window. With ``sliding=False`` (the upload limiter) the TTL is
fixed when the counter is created.

A request that passes the check but loses the race for the last slot is
rejected after its increment has landed. The counter then exceeds
``max_attempts`` and, under the sliding policy, its TTL has been re-armed,
so such a rejection extends the window like an accepted request does.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from kosmoguard.adapters.counter_store.base import AbstractCounterStore
from kosmoguard.core.audit import AuditLogger, salted_hash
from kosmoguard.core.errors import CounterStoreUnavailableError
from kosmoguard.services.abuse import AbuseEscalator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitOutcome:
    """Result of a check-and-consume call.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the window (0 when blocked).
        reset_at: UNIX epoch seconds when the counter expires.
        retry_after: Seconds the caller should wait when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int | None = None


class RateLimiter:
    """Enforces per-signature request budgets on top of a counter store."""

    def __init__(
        self,
        store: AbstractCounterStore,
        escalator: AbuseEscalator,
        audit: AuditLogger,
        *,
        fail_open: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._escalator = escalator
        self._audit = audit
        self._fail_open = fail_open
        self._clock = clock

    def check_and_consume(
        self,
        signature: str,
        max_attempts: int,
        window_seconds: int,
        *,
        sliding: bool = True,
        limiter_name: str = "api",
        user_id: int | str | None = None,
        ip: str | None = None,
    ) -> RateLimitOutcome:
        """Consume one request from the budget identified by ``signature``.

        Args:
            signature: Counter key from the signature resolver.
            max_attempts: Requests allowed per window.
            window_seconds: Window length in seconds.
            sliding: Re-arm the window on every accepted request.
            limiter_name: Limiter name recorded in audit events.
            user_id: Authenticated user id, used for abuse escalation.
            ip: Client IP, used for abuse escalation of anonymous callers.

        Returns:
            RateLimitOutcome describing the decision.

        Raises:
            ValueError: If the arguments are invalid.
            CounterStoreUnavailableError: If the store is down and the
                limiter is configured to fail closed.
        """
        if not signature:
            raise ValueError("signature must be a non-empty string")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        now = self._clock()
        try:
            current = self._store.get(signature) or 0
            if current >= max_attempts:
                return self._reject(signature, max_attempts, window_seconds, now, current,
                                    limiter_name=limiter_name, user_id=user_id, ip=ip)

            new_count = self._store.increment(signature, window_seconds, reset_ttl=sliding)
            if new_count > max_attempts:
                # A concurrent request took the last slot between get and increment
                return self._reject(signature, max_attempts, window_seconds, now, new_count,
                                    limiter_name=limiter_name, user_id=user_id, ip=ip)

            if sliding:
                reset_at = now + window_seconds
            else:
                reset_at = now + (self._store.ttl(signature) or window_seconds)
        except CounterStoreUnavailableError:
            return self._on_store_unavailable(max_attempts, window_seconds, now, limiter_name)

        return RateLimitOutcome(
            allowed=True,
            limit=max_attempts,
            remaining=max(0, max_attempts - new_count),
            reset_at=int(reset_at),
        )

    def _reject(
        self,
        signature: str,
        max_attempts: int,
        window_seconds: int,
        now: float,
        attempts: int,
        *,
        limiter_name: str,
        user_id: int | str | None,
        ip: str | None,
    ) -> RateLimitOutcome:
        retry_after = self._store.ttl(signature) or window_seconds

        self._audit.log(
            "security",
            logging.WARNING,
            "rate_limit.exceeded",
            {
                "user_id": user_id,
                "ip_hash": salted_hash(ip),
                "limiter": limiter_name,
                "attempts": attempts,
                "limit": max_attempts,
                "retry_after_s": retry_after,
            },
        )
        self._escalator.record_violation(user_id, ip, limiter_name)

        return RateLimitOutcome(
            allowed=False,
            limit=max_attempts,
            remaining=0,
            reset_at=int(now + retry_after),
            retry_after=retry_after,
        )

    def _on_store_unavailable(
        self,
        max_attempts: int,
        window_seconds: int,
        now: float,
        limiter_name: str,
    ) -> RateLimitOutcome:
        logger.error(
            "rate_limit.store_unavailable",
            extra={
                "limiter": limiter_name,
                "fail_open": self._fail_open,
            },
        )
        if not self._fail_open:
            raise CounterStoreUnavailableError(
                code="rate_limit_unavailable",
                message="Rate limiting is temporarily unavailable. Please try again later.",
                details={"limiter": limiter_name},
            )
        return RateLimitOutcome(
            allowed=True,
            limit=max_attempts,
            remaining=max_attempts,
            reset_at=int(now + window_seconds),
        )
