"""Tests for the health data access guard and the security endpoints."""

import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kosmoguard.adapters.counter_store import InMemoryCounterStore
from kosmoguard.core.config import settings
from kosmoguard.core.errors import CounterStoreUnavailableError
from kosmoguard.core.rate_limit import SecurityServices, build_security_services, get_security_services

DAY = 24 * 60 * 60


@pytest.fixture
def one_request_per_window(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.rate_limit, "api_max_attempts", 1)


def _trip_abuse_threshold(client: TestClient, headers: dict[str, str]) -> None:
    """One allowed request followed by five rejected ones."""
    assert client.get("/v1/security/status", headers=headers).status_code == 200
    for _ in range(5):
        assert client.get("/v1/security/status", headers=headers).status_code == 429


def test_anonymous_caller_gets_401(client: TestClient) -> None:
    response = client.get("/v1/health-data/access")

    assert response.status_code == 401
    assert response.json() == {
        "error": "Authentication required for health data access",
        "code": "AUTH_REQUIRED",
    }


def test_clean_user_is_granted(client: TestClient, user_headers: dict[str, str]) -> None:
    response = client.get("/v1/health-data/access", headers=user_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "granted", "user_id": 42}


def test_flagged_account_gets_403(
    client: TestClient, user_headers: dict[str, str], services: SecurityServices
) -> None:
    services.flags.flag_account("user:42", 3600)

    response = client.get("/v1/health-data/access", headers=user_headers)

    assert response.status_code == 403
    assert response.json()["code"] == "SECURITY_VERIFICATION_REQUIRED"


def test_repeated_violations_block_health_data_for_24h(
    client: TestClient, user_headers: dict[str, str], one_request_per_window: None, clock
) -> None:
    _trip_abuse_threshold(client, user_headers)

    blocked = client.get("/v1/health-data/access", headers=user_headers)
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "ADDITIONAL_VERIFICATION_REQUIRED"

    # other users are unaffected
    other = client.get("/v1/health-data/access", headers={"X-API-Key": "user-key-7"})
    assert other.status_code == 200

    clock.advance(DAY)
    assert client.get("/v1/health-data/access", headers=user_headers).status_code == 200


def test_four_violations_do_not_block(
    client: TestClient, user_headers: dict[str, str], one_request_per_window: None
) -> None:
    client.get("/v1/security/status", headers=user_headers)
    for _ in range(4):
        client.get("/v1/security/status", headers=user_headers)

    assert client.get("/v1/health-data/access", headers=user_headers).status_code == 200


def test_security_status_reports_escalation_state(
    client: TestClient, user_headers: dict[str, str], one_request_per_window: None, clock
) -> None:
    _trip_abuse_threshold(client, user_headers)

    clock.advance(60)
    body = client.get("/v1/security/status", headers=user_headers).json()

    assert body["actor_type"] == "user"
    assert body["violations_24h"] == 5
    assert body["suspicious"] is True
    assert body["suspicious_expires_in"] == DAY - 60
    assert body["account_flagged"] is False


def test_anonymous_security_status(client: TestClient) -> None:
    body = client.get("/v1/security/status").json()

    assert body["actor_type"] == "ip"
    assert body["violations_24h"] == 0
    assert body["suspicious"] is False


class TestAccountFlagEndpoints:
    def test_admin_can_flag_and_clear_account(
        self, client: TestClient, admin_headers: dict[str, str], user_headers: dict[str, str]
    ) -> None:
        flagged = client.post("/v1/security/accounts/42/flag", headers=admin_headers)
        assert flagged.status_code == 200
        assert flagged.json()["account_flagged"] is True
        assert client.get("/v1/health-data/access", headers=user_headers).status_code == 403

        cleared = client.delete("/v1/security/accounts/42/flag", headers=admin_headers)
        assert cleared.status_code == 200
        assert cleared.json()["account_flagged"] is False
        assert client.get("/v1/health-data/access", headers=user_headers).status_code == 200

    def test_non_admin_is_forbidden(self, client: TestClient, user_headers: dict[str, str]) -> None:
        response = client.post("/v1/security/accounts/7/flag", headers=user_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "admin_required"

    def test_anonymous_is_unauthorized(self, client: TestClient) -> None:
        response = client.post("/v1/security/accounts/7/flag")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "auth_required"

    def test_clearing_account_flag_keeps_suspicious_flag(
        self,
        client: TestClient,
        admin_headers: dict[str, str],
        services: SecurityServices,
    ) -> None:
        services.flags.flag_suspicious("user:42", DAY)

        client.delete("/v1/security/accounts/42/flag", headers=admin_headers)

        assert services.flags.is_suspicious("user:42") is True


class TestCounterStoreOutage:
    @pytest.fixture
    def store_down(self, store: InMemoryCounterStore, monkeypatch: pytest.MonkeyPatch) -> None:
        def _unavailable(*args, **kwargs):
            raise CounterStoreUnavailableError(code="counter_store_unavailable", message="down")

        for method in ("get", "put", "increment", "ttl", "delete"):
            monkeypatch.setattr(store, method, _unavailable)

    def test_health_data_is_granted_when_failing_open(
        self, client: TestClient, user_headers: dict[str, str], store_down: None, caplog
    ) -> None:
        with caplog.at_level(logging.ERROR):
            response = client.get("/v1/health-data/access", headers=user_headers)

        assert response.status_code == 200
        assert response.json() == {"status": "granted", "user_id": 42}
        messages = {r.getMessage() for r in caplog.records}
        assert "rate_limit.store_unavailable" in messages
        assert "security_flag.store_unavailable" in messages

    def test_security_status_reports_clean_state_when_failing_open(
        self, client: TestClient, user_headers: dict[str, str], store_down: None
    ) -> None:
        response = client.get("/v1/security/status", headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["violations_24h"] == 0
        assert body["suspicious"] is False
        assert body["suspicious_expires_in"] is None
        assert body["account_flagged"] is False

    def test_guard_returns_503_when_failing_closed(
        self,
        app: FastAPI,
        store: InMemoryCounterStore,
        clock,
        user_headers: dict[str, str],
        store_down: None,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings.rate_limit, "fail_open", False)
        monkeypatch.setattr(settings.rate_limit, "enabled", False)
        closed = build_security_services(store, clock=clock)
        app.dependency_overrides[get_security_services] = lambda: closed

        response = TestClient(app).get("/v1/health-data/access", headers=user_headers)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "counter_store_unavailable"
