"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any kosmoguard import so the global
settings object is built from them instead of a local .env file.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEYS", "user-key-42:42,user-key-7:7,admin-key:1")
os.environ.setdefault("APP_ADMIN_USER_IDS", "1")
os.environ.setdefault("APP_SECRET_KEY", "test-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from kosmoguard.adapters.counter_store import InMemoryCounterStore  # noqa: E402
from kosmoguard.core.app_factory import create_app  # noqa: E402
from kosmoguard.core.audit import AuditLogger  # noqa: E402
from kosmoguard.core.rate_limit import (  # noqa: E402
    SecurityServices,
    build_security_services,
    get_security_services,
)


class FakeClock:
    """Deterministic clock; call it to read the time."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def audit() -> Mock:
    return Mock(spec=AuditLogger)


@pytest.fixture
def services(store: InMemoryCounterStore, clock: FakeClock) -> SecurityServices:
    return build_security_services(store, clock=clock)


@pytest.fixture
def app(services: SecurityServices) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_security_services] = lambda: services
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-API-Key": "user-key-42"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": "admin-key"}
