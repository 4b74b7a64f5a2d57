from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from kosmoguard.core.auth import Actor
from kosmoguard.core.health_guard import require_health_data_access
from kosmoguard.core.rate_limit import rate_limit
from kosmoguard.schemas.security import HealthDataAccessResponse, RateLimitErrorResponse

router = APIRouter(prefix="/health-data", tags=["Health Data"])


@router.get(
    "/access",
    name="health_data.access",
    response_model=HealthDataAccessResponse,
    dependencies=[Depends(rate_limit("health-data-access", 60, 1))],
    responses={429: {"model": RateLimitErrorResponse}},
)
async def health_data_access(
    actor: Annotated[Actor, Depends(require_health_data_access)],
) -> HealthDataAccessResponse:
    """Entry point of the health data area.

    Rejects anonymous, account-flagged and suspicious callers before any
    health record route is reached.
    """
    return HealthDataAccessResponse(user_id=actor.user_id)
