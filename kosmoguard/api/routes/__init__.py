from __future__ import annotations

from kosmoguard.api.routes.health import router as health_router
from kosmoguard.api.routes.health_data import router as health_data_router
from kosmoguard.api.routes.security import router as security_router
from kosmoguard.api.routes.uploads import router as uploads_router

__all__ = ["health_router", "health_data_router", "security_router", "uploads_router"]
