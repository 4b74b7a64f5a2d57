"""Unit tests for caller identification."""

from unittest.mock import Mock, patch

import pytest

from kosmoguard.core.auth import (
    Actor,
    authenticate_api_key,
    client_ip,
    parse_api_keys,
    parse_user_ids,
    resolve_actor,
)
from kosmoguard.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    def test_parses_pairs(self) -> None:
        assert parse_api_keys("k1:42,k2:7") == {"k1": 42, "k2": 7}

    def test_trims_whitespace(self) -> None:
        assert parse_api_keys(" k1 : 42 , k2:7 ") == {"k1": 42, "k2": 7}

    def test_key_may_contain_colons(self) -> None:
        assert parse_api_keys("sk:live:abc:9") == {"sk:live:abc": 9}

    @pytest.mark.parametrize("raw", [None, "", "  ,  ,"])
    def test_empty_input(self, raw) -> None:
        assert parse_api_keys(raw) == {}

    def test_skips_malformed_entries(self) -> None:
        assert parse_api_keys("novalue,k:notanint,:5,ok:3") == {"ok": 3}


def test_parse_user_ids() -> None:
    assert parse_user_ids("1, 2,x,3") == {1, 2, 3}
    assert parse_user_ids(None) == set()


class TestAuthenticate:
    @patch("kosmoguard.core.auth.settings")
    def test_known_key_maps_to_user(self, mock_settings) -> None:
        mock_settings.app.api_keys = "good:42"
        assert authenticate_api_key("good") == 42

    @patch("kosmoguard.core.auth.settings")
    def test_unknown_key_is_rejected(self, mock_settings) -> None:
        mock_settings.app.api_keys = "good:42"

        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate_api_key("bad")

        assert exc_info.value.code == "invalid_api_key"
        assert exc_info.value.status_code == 403


def _request(host: str | None, forwarded: str | None = None) -> Mock:
    request = Mock()
    request.client = Mock(host=host) if host else None
    request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
    return request


class TestClientIp:
    @patch("kosmoguard.core.auth.settings")
    def test_ignores_forwarded_header_by_default(self, mock_settings) -> None:
        mock_settings.app.trust_proxy_headers = False
        assert client_ip(_request("10.0.0.1", "203.0.113.5")) == "10.0.0.1"

    @patch("kosmoguard.core.auth.settings")
    def test_uses_first_forwarded_entry_when_trusted(self, mock_settings) -> None:
        mock_settings.app.trust_proxy_headers = True
        assert client_ip(_request("10.0.0.1", "203.0.113.5, 10.0.0.2")) == "203.0.113.5"

    @patch("kosmoguard.core.auth.settings")
    def test_missing_client(self, mock_settings) -> None:
        mock_settings.app.trust_proxy_headers = False
        assert client_ip(_request(None)) is None


class TestResolveActor:
    @pytest.mark.asyncio
    @patch("kosmoguard.core.auth.settings")
    async def test_anonymous_actor(self, mock_settings) -> None:
        mock_settings.app.trust_proxy_headers = False

        actor = await resolve_actor(_request("10.0.0.1"), x_api_key=None)

        assert actor == Actor(user_id=None, ip="10.0.0.1")
        assert actor.is_authenticated is False

    @pytest.mark.asyncio
    @patch("kosmoguard.core.auth.settings")
    async def test_authenticated_actor(self, mock_settings) -> None:
        mock_settings.app.trust_proxy_headers = False
        mock_settings.app.api_keys = "good:42"

        actor = await resolve_actor(_request("10.0.0.1"), x_api_key="good")

        assert actor.user_id == 42
        assert actor.is_authenticated is True
