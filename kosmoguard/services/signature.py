"""Rate limit key derivation.

Keys prefer the authenticated user id over the client IP. When the IP has
to be used it is hashed, so raw addresses never end up in the counter store.
"""

from __future__ import annotations

import hashlib


def hash_ip(ip: str | None) -> str:
    """Return the SHA-256 hex digest of ``ip`` ("unknown" when missing)."""

    return hashlib.sha256((ip or "unknown").encode()).hexdigest()


def resolve_actor_identity(user_id: int | str | None, ip: str | None) -> str:
    """Identify the caller as ``user:{id}`` or ``ip:{sha256(ip)}``.

    Examples:
        >>> resolve_actor_identity(42, "10.0.0.1")
        'user:42'
        >>> resolve_actor_identity(None, "10.0.0.1").startswith("ip:")
        True
    """

    if user_id is not None and user_id != "":
        return f"user:{user_id}"
    return f"ip:{hash_ip(ip)}"


def resolve_request_signature(
    limiter_name: str,
    user_id: int | str | None,
    ip: str | None,
    route: str,
) -> str:
    """Build the counter key for one (limiter, actor, route) scope."""

    parts = [limiter_name, resolve_actor_identity(user_id, ip), route]
    return "rate_limit:" + "|".join(parts)


def resolve_upload_signature(user_id: int | str | None, ip: str | None) -> str:
    """Build the upload counter key, shared by every upload route."""

    return f"upload:{resolve_actor_identity(user_id, ip)}"
