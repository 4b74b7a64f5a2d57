"""Rate limiting dependencies for FastAPI routes.

This module wires the counter store, rate limiter and abuse escalator into
the HTTP layer.

Design goals:
- Minimal coupling: routes depend on dependency functions only.
- Swap-friendly: the counter store is injected, so tests substitute an
  in-memory store with a controllable clock.

Usage:
    @router.get("/things", dependencies=[Depends(rate_limit("api", 60, 1))])
    @router.post("/uploads", dependencies=[Depends(upload_rate_limit)])
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Request, Response

from kosmoguard.adapters.counter_store import AbstractCounterStore, build_counter_store
from kosmoguard.core.audit import audit_logger
from kosmoguard.core.auth import Actor, resolve_actor
from kosmoguard.core.config import settings
from kosmoguard.core.errors import RateLimitExceededError
from kosmoguard.services.abuse import AbuseEscalator
from kosmoguard.services.rate_limiter import RateLimiter, RateLimitOutcome
from kosmoguard.services.security_flags import SecurityFlagService
from kosmoguard.services.signature import resolve_request_signature, resolve_upload_signature

logger = logging.getLogger(__name__)


@dataclass
class SecurityServices:
    """The collaborators shared by the limiter dependencies and guards."""

    store: AbstractCounterStore
    flags: SecurityFlagService
    escalator: AbuseEscalator
    limiter: RateLimiter


def build_security_services(
    store: AbstractCounterStore,
    *,
    clock: Callable[[], float] = time.time,
) -> SecurityServices:
    """Assemble the security services around ``store`` using current settings."""

    flags = SecurityFlagService(store, fail_open=settings.rate_limit.fail_open)
    escalator = AbuseEscalator(
        store,
        flags,
        audit_logger,
        threshold=settings.security.abuse_threshold,
        window_seconds=settings.security.abuse_window_seconds,
        flag_ttl_seconds=settings.security.suspicious_flag_ttl_seconds,
        fail_open=settings.rate_limit.fail_open,
    )
    limiter = RateLimiter(
        store,
        escalator,
        audit_logger,
        fail_open=settings.rate_limit.fail_open,
        clock=clock,
    )
    return SecurityServices(store=store, flags=flags, escalator=escalator, limiter=limiter)


_services: SecurityServices | None = None
_services_config: tuple | None = None


def get_security_services() -> SecurityServices:
    """Return the process-wide security services.

    The instance is cached in-module so counters survive across requests.
    If the backend configuration changes (primarily in tests) it is rebuilt.
    """

    global _services, _services_config

    config = (
        settings.rate_limit.backend,
        settings.rate_limit.redis_url,
        settings.rate_limit.fail_open,
        settings.security.abuse_threshold,
        settings.security.abuse_window_seconds,
        settings.security.suspicious_flag_ttl_seconds,
    )
    if _services is None or _services_config != config:
        _services = build_security_services(build_counter_store(settings.rate_limit))
        _services_config = config
        logger.info("rate_limit.services_built", extra={"backend": settings.rate_limit.backend})

    return _services


def _route_identity(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "name", None) or request.url.path


def _apply_headers(response: Response, outcome: RateLimitOutcome, window_seconds: int) -> None:
    if not settings.rate_limit.include_headers:
        return
    response.headers["X-RateLimit-Limit"] = str(outcome.limit)
    response.headers["X-RateLimit-Remaining"] = str(outcome.remaining)
    response.headers["X-RateLimit-Reset"] = str(outcome.reset_at)
    if outcome.remaining == 0:
        response.headers["Retry-After"] = str(window_seconds)


def rate_limit(
    limiter_name: str = "api",
    max_attempts: int | None = None,
    decay_minutes: int | None = None,
) -> Callable[..., Awaitable[None]]:
    """Build a sliding-window rate limit dependency.

    Args:
        limiter_name: Name of the limiter, part of the counter key.
        max_attempts: Requests allowed per window (``RATE_LIMIT_API_MAX_ATTEMPTS``
            when omitted, 60 by default).
        decay_minutes: Window length in minutes (``RATE_LIMIT_API_DECAY_MINUTES``
            when omitted, 1 by default).

    Returns:
        An async FastAPI dependency raising RateLimitExceededError (429)
        when the caller is over budget.
    """

    async def enforce_rate_limit(
        request: Request,
        response: Response,
        actor: Annotated[Actor, Depends(resolve_actor)],
        services: Annotated[SecurityServices, Depends(get_security_services)],
    ) -> None:
        if not settings.rate_limit.enabled:
            return

        limit = max_attempts or settings.rate_limit.api_max_attempts
        window_seconds = (decay_minutes or settings.rate_limit.api_decay_minutes) * 60
        signature = resolve_request_signature(
            limiter_name, actor.user_id, actor.ip, _route_identity(request)
        )

        outcome = services.limiter.check_and_consume(
            signature,
            limit,
            window_seconds,
            sliding=True,
            limiter_name=limiter_name,
            user_id=actor.user_id,
            ip=actor.ip,
        )
        if not outcome.allowed:
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Too many requests. Please try again later.",
                limit=outcome.limit,
                retry_after=outcome.retry_after or window_seconds,
                limiter=limiter_name,
            )

        _apply_headers(response, outcome, window_seconds)

    return enforce_rate_limit


async def upload_rate_limit(
    response: Response,
    actor: Annotated[Actor, Depends(resolve_actor)],
    services: Annotated[SecurityServices, Depends(get_security_services)],
) -> None:
    """Fixed-window upload limiter (10 uploads per minute by default).

    The budget is shared by all upload routes and keyed by user id, or by
    the hashed client IP for anonymous callers.
    """

    if not settings.rate_limit.enabled:
        return

    limit = settings.rate_limit.upload_max_attempts
    window_seconds = settings.rate_limit.upload_decay_minutes * 60

    outcome = services.limiter.check_and_consume(
        resolve_upload_signature(actor.user_id, actor.ip),
        limit,
        window_seconds,
        sliding=False,
        limiter_name="upload",
        user_id=actor.user_id,
        ip=actor.ip,
    )
    if not outcome.allowed:
        logger.warning(
            "upload_rate_limit.exceeded",
            extra={"user_id": actor.user_id or "guest", "retry_after_s": outcome.retry_after},
        )
        raise RateLimitExceededError(
            code="upload_rate_limit_exceeded",
            message="Too many upload attempts. Please try again later.",
            limit=outcome.limit,
            retry_after=outcome.retry_after or window_seconds,
            limiter="upload",
        )

    _apply_headers(response, outcome, window_seconds)
