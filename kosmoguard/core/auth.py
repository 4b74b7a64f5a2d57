"""Caller identification.

Callers authenticate with an ``X-API-Key`` header. Keys are configured as
comma-separated ``key:user_id`` pairs; a request without a key is treated
as anonymous and identified by its IP address.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, Request

from kosmoguard.core.config import settings
from kosmoguard.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The caller of the current request."""

    user_id: int | None
    ip: str | None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def parse_api_keys(keys_string: str | None) -> dict[str, int]:
    """Parse ``key:user_id`` pairs into a mapping.

    Malformed entries are skipped with a warning.

    Examples:
        >>> parse_api_keys("k1:42, k2:7")
        {'k1': 42, 'k2': 7}
        >>> parse_api_keys(None)
        {}
    """
    if not keys_string:
        return {}

    keys: dict[str, int] = {}
    for entry in keys_string.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, sep, user_id = entry.rpartition(":")
        if not sep or not key.strip() or not user_id.strip().isdigit():
            logger.warning("auth.malformed_key_entry", extra={"entry_length": len(entry)})
            continue
        keys[key.strip()] = int(user_id)
    return keys


def parse_user_ids(ids_string: str | None) -> set[int]:
    """Parse a comma-separated list of user ids."""
    if not ids_string:
        return set()
    return {int(part) for part in ids_string.split(",") if part.strip().isdigit()}


def client_ip(request: Request) -> str | None:
    """Return the client IP, honouring X-Forwarded-For only when trusted."""

    if settings.app.trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else None


def authenticate_api_key(provided_key: str) -> int:
    """Map an API key to its user id.

    Raises:
        AuthenticationAppError: If the key is unknown.
    """
    user_id = parse_api_keys(settings.app.api_keys).get(provided_key)
    if user_id is None:
        logger.warning(
            "auth.invalid_key",
            extra={"api_key_hash": hashlib.sha256(provided_key.encode()).hexdigest()[:16]},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid API key",
            details={"hint": "Provide a valid X-API-Key header or omit it for anonymous access"},
        )
    return user_id


async def resolve_actor(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> Actor:
    """FastAPI dependency returning the caller of the current request.

    Raises:
        AuthenticationAppError: 403 when an unknown API key is presented.
    """
    user_id = authenticate_api_key(x_api_key) if x_api_key else None
    return Actor(user_id=user_id, ip=client_ip(request))


async def require_admin(actor: Annotated[Actor, Depends(resolve_actor)]) -> Actor:
    """FastAPI dependency restricting a route to configured admin users.

    Raises:
        AuthenticationAppError: 401 for anonymous callers, 403 for non-admins.
    """
    if not actor.is_authenticated:
        raise AuthenticationAppError(
            code="auth_required",
            message="Authentication required",
            status_code=401,
        )
    if actor.user_id not in parse_user_ids(settings.app.admin_user_ids):
        logger.warning("auth.admin_denied", extra={"user_id": actor.user_id})
        raise AuthenticationAppError(
            code="admin_required",
            message="Administrator privileges required",
        )
    return actor
