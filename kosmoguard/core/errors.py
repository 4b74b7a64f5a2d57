"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    limiter: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


@dataclass
class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""

    status_code: int = 403


class CounterStoreUnavailableError(AppError):
    """Raised when the counter store backend cannot be reached."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a caller has used up its budget for the current window."""

    limit: int = 0
    retry_after: int = 0
    limiter: str = "api"


@dataclass
class HealthDataAccessError(AppError):
    """Raised when the health data guard refuses a request."""

    status_code: int = 403
