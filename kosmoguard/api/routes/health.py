from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from kosmoguard.core.errors import CounterStoreUnavailableError
from kosmoguard.core.rate_limit import SecurityServices, get_security_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_READINESS_PROBE_KEY = "health:readiness_probe"


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers; never touches the counter store."""

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(
    services: Annotated[SecurityServices, Depends(get_security_services)],
):
    """Readiness check: reports 503 while the counter store is unreachable."""

    try:
        services.store.get(_READINESS_PROBE_KEY)
    except CounterStoreUnavailableError:
        logger.warning("health.counter_store_unready")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "counter_store": "unreachable"},
        )
    return {"status": "ok", "counter_store": "reachable"}
