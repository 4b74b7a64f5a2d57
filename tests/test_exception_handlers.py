"""Tests for global exception handlers.

Validates that every error type maps to the right status code and body,
and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kosmoguard.core.errors import (
    AppError,
    AuthenticationAppError,
    CounterStoreUnavailableError,
    HealthDataAccessError,
    RateLimitExceededError,
    ValidationAppError,
)
from kosmoguard.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def bare_app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def bare_client(bare_app: FastAPI) -> TestClient:
    return TestClient(bare_app)


class TestAppErrorHandler:
    def test_validation_error_returns_400(self, bare_client: TestClient, bare_app: FastAPI):
        @bare_app.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(code="bad_input", message="Bad input", details={"hint": "fix it"})

        response = bare_client.get("/test-validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "bad_input"
        assert error["details"]["hint"] == "fix it"
        assert "request_id" in error

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_authentication_error_uses_its_status(
        self, bare_client: TestClient, bare_app: FastAPI, status_code: int
    ):
        @bare_app.get("/test-auth")
        async def endpoint():
            raise AuthenticationAppError(code="nope", message="Nope", status_code=status_code)

        assert bare_client.get("/test-auth").status_code == status_code

    def test_counter_store_unavailable_returns_503(self, bare_client: TestClient, bare_app: FastAPI):
        @bare_app.get("/test-store")
        async def endpoint():
            raise CounterStoreUnavailableError(code="rate_limit_unavailable", message="Down")

        response = bare_client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "rate_limit_unavailable"


class TestRateLimitHandler:
    def test_rate_limit_error_renders_429_body(self, bare_client: TestClient, bare_app: FastAPI):
        @bare_app.get("/test-limited")
        async def endpoint():
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Too many requests. Please try again later.",
                limit=60,
                retry_after=42,
            )

        response = bare_client.get("/test-limited")

        assert response.status_code == 429
        assert response.json() == {
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please try again later.",
            "retry_after": 42,
            "limit": 60,
            "remaining": 0,
        }
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestHealthDataHandler:
    def test_health_data_error_uses_its_status_and_code(self, bare_client: TestClient, bare_app: FastAPI):
        @bare_app.get("/test-guard")
        async def endpoint():
            raise HealthDataAccessError(
                code="ADDITIONAL_VERIFICATION_REQUIRED",
                message="Additional verification required",
                status_code=429,
            )

        response = bare_client.get("/test-guard")

        assert response.status_code == 429
        assert response.json() == {
            "error": "Additional verification required",
            "code": "ADDITIONAL_VERIFICATION_REQUIRED",
        }


class TestGeneralExceptionHandler:
    def test_handlers_registered(self, bare_app: FastAPI):
        assert AppError in bare_app.exception_handlers
        assert RateLimitExceededError in bare_app.exception_handlers
        assert Exception in bare_app.exception_handlers

    def test_never_leaks_exception_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("redis://:password@cache:6379 refused")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "password" not in json.dumps(data)
        assert "RuntimeError" not in json.dumps(data)
