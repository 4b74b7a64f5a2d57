"""Access guard for health-sensitive routes.

Consults the security flags raised elsewhere (admin account flags and the
abuse escalator's suspicious flag) before letting a request reach health
data, and records every granted access in the security audit log.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request

from kosmoguard.core.audit import audit_logger, salted_hash
from kosmoguard.core.auth import Actor, resolve_actor
from kosmoguard.core.errors import HealthDataAccessError
from kosmoguard.core.rate_limit import SecurityServices, get_security_services
from kosmoguard.services.signature import resolve_actor_identity

logger = logging.getLogger(__name__)


async def require_health_data_access(
    request: Request,
    actor: Annotated[Actor, Depends(resolve_actor)],
    services: Annotated[SecurityServices, Depends(get_security_services)],
) -> Actor:
    """FastAPI dependency guarding health data routes.

    Raises:
        HealthDataAccessError: 401 AUTH_REQUIRED for anonymous callers,
            403 SECURITY_VERIFICATION_REQUIRED for flagged accounts,
            429 ADDITIONAL_VERIFICATION_REQUIRED for suspicious actors.
    """
    if not actor.is_authenticated:
        raise HealthDataAccessError(
            code="AUTH_REQUIRED",
            message="Authentication required for health data access",
            status_code=401,
        )

    identity = resolve_actor_identity(actor.user_id, actor.ip)

    if services.flags.is_account_flagged(identity):
        logger.warning(
            "health_data.flagged_account_attempt",
            extra={"user_id": actor.user_id, "ip_hash": salted_hash(actor.ip)},
        )
        raise HealthDataAccessError(
            code="SECURITY_VERIFICATION_REQUIRED",
            message="Account security verification required",
            status_code=403,
        )

    if services.flags.is_suspicious(identity):
        raise HealthDataAccessError(
            code="ADDITIONAL_VERIFICATION_REQUIRED",
            message="Additional verification required",
            status_code=429,
        )

    route = request.scope.get("route")
    audit_logger.log(
        "security",
        logging.INFO,
        "security.health_data_access",
        {
            "user_id": actor.user_id,
            "route": getattr(route, "name", None) or request.url.path,
            "method": request.method,
            "ip_hash": salted_hash(actor.ip),
            "user_agent_hash": salted_hash(request.headers.get("user-agent")),
        },
    )
    return actor
