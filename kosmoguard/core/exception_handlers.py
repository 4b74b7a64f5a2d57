"""Global exception handlers for consistent error responses.

Design:
- RateLimitExceededError -> 429 with the rate limit body and headers
- HealthDataAccessError -> status carried by the error, ``{error, code}``
- Other AppError subclasses -> 400/401/403/503 with ``{"error": {...}}``
- Unexpected Exception -> generic 500 (safety net)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from kosmoguard.core.errors import (
    AppError,
    AuthenticationAppError,
    CounterStoreUnavailableError,
    HealthDataAccessError,
    RateLimitExceededError,
)
from kosmoguard.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Render a rejected request as HTTP 429 with retry hints."""

    logger.info(
        "rate_limit.rejected_response",
        extra={
            "limiter": exc.limiter,
            "limit": exc.limit,
            "retry_after_s": exc.retry_after,
            "request_path": request.url.path,
        },
    )

    headers = {
        "X-RateLimit-Limit": str(exc.limit),
        "X-RateLimit-Remaining": "0",
        "Retry-After": str(exc.retry_after),
    }

    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": exc.message,
            "retry_after": exc.retry_after,
            "limit": exc.limit,
            "remaining": 0,
        },
        headers=headers,
    )


async def health_data_access_handler(request: Request, exc: HealthDataAccessError) -> JSONResponse:
    """Render a refused health data access with its distinct error code."""

    logger.warning(
        "health_data.access_denied",
        extra={
            "error_code": exc.code,
            "status_code": exc.status_code,
            "request_path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - AuthenticationAppError -> its status_code (401 or 403)
    - CounterStoreUnavailableError -> 503 Service Unavailable
    - anything else -> 400 Bad Request
    """
    status_code = 400
    if isinstance(exc, AuthenticationAppError):
        status_code = exc.status_code
    elif isinstance(exc, CounterStoreUnavailableError):
        status_code = 503

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message; no stack traces or
    exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Starlette dispatches on the exception's MRO, so the specific AppError
    subclasses win over the AppError handler.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(HealthDataAccessError)(health_data_access_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
