from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from kosmoguard.core.audit import audit_logger
from kosmoguard.core.auth import Actor, require_admin, resolve_actor
from kosmoguard.core.config import settings
from kosmoguard.core.rate_limit import SecurityServices, get_security_services, rate_limit
from kosmoguard.schemas.security import AccountFlagResponse, SecurityStatusResponse
from kosmoguard.services.signature import resolve_actor_identity

router = APIRouter(prefix="/security", tags=["Security"])


@router.get(
    "/status",
    name="security.status",
    response_model=SecurityStatusResponse,
    dependencies=[Depends(rate_limit())],
)
async def security_status(
    actor: Annotated[Actor, Depends(resolve_actor)],
    services: Annotated[SecurityServices, Depends(get_security_services)],
) -> SecurityStatusResponse:
    """Report the caller's violation count and security flags."""

    identity = resolve_actor_identity(actor.user_id, actor.ip)
    return SecurityStatusResponse(
        actor_type="user" if actor.is_authenticated else "ip",
        violations_24h=services.escalator.violations(actor.user_id, actor.ip),
        suspicious=services.flags.is_suspicious(identity),
        suspicious_expires_in=services.flags.suspicious_ttl(identity),
        account_flagged=services.flags.is_account_flagged(identity),
    )


@router.post(
    "/accounts/{user_id}/flag",
    name="security.accounts.flag",
    response_model=AccountFlagResponse,
    dependencies=[Depends(rate_limit("admin"))],
)
async def flag_account(
    user_id: int,
    admin: Annotated[Actor, Depends(require_admin)],
    services: Annotated[SecurityServices, Depends(get_security_services)],
) -> AccountFlagResponse:
    """Require security verification from an account before health data access."""

    ttl = settings.security.account_flag_ttl_seconds
    services.flags.flag_account(resolve_actor_identity(user_id, None), ttl)
    audit_logger.log(
        "security",
        logging.WARNING,
        "security.account_flagged",
        {"user_id": user_id, "admin_user_id": admin.user_id, "ttl_s": ttl},
    )
    return AccountFlagResponse(user_id=user_id, account_flagged=True, ttl_seconds=ttl)


@router.delete(
    "/accounts/{user_id}/flag",
    name="security.accounts.unflag",
    response_model=AccountFlagResponse,
    dependencies=[Depends(rate_limit("admin"))],
)
async def clear_account_flag(
    user_id: int,
    admin: Annotated[Actor, Depends(require_admin)],
    services: Annotated[SecurityServices, Depends(get_security_services)],
) -> AccountFlagResponse:
    """Lift an admin account flag. Suspicious flags can only expire."""

    services.flags.clear_account_flag(resolve_actor_identity(user_id, None))
    audit_logger.log(
        "security",
        logging.INFO,
        "security.account_unflagged",
        {"user_id": user_id, "admin_user_id": admin.user_id},
    )
    return AccountFlagResponse(user_id=user_id, account_flagged=False)
