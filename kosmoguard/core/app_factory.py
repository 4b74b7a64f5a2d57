"""Application factory for the KosmoGuard API.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from kosmoguard.api.routes import (
    health_data_router,
    health_router,
    security_router,
    uploads_router,
)
from kosmoguard.core.config import settings
from kosmoguard.core.exception_handlers import setup_exception_handlers
from kosmoguard.core.logging import configure_logging
from kosmoguard.core.middleware import request_id_middleware
from kosmoguard.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="KosmoGuard API",
        description=(
            "Request rate limiting and abuse escalation for the KosmoHealth "
            "platform: sliding-window API limits, upload limits, a 24h abuse "
            "escalator and the health data access guard."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(uploads_router, prefix="/v1")
    app.include_router(health_data_router, prefix="/v1")
    app.include_router(security_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
