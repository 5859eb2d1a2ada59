from unittest.mock import MagicMock

import pytest
import requests

from common.auth import AuthenticatedExecutor, RefreshTokenProvider, TokenProvider
from common.errors import AuthExpired, NotAuthenticated, RemoteUnavailable


class FakeTokens(TokenProvider):
    def __init__(self, tokens):
        self.tokens = list(tokens)
        self.requests = 0
        self.invalidated = []

    def current_access_token(self) -> str:
        self.requests += 1
        if not self.tokens:
            raise NotAuthenticated("Not signed in")
        return self.tokens.pop(0)

    def invalidate(self, token: str) -> None:
        self.invalidated.append(token)


def test_execute_passes_token_through():
    tokens = FakeTokens(["t1"])
    executor = AuthenticatedExecutor(tokens)

    assert executor.execute(lambda token: f"used {token}") == "used t1"
    assert tokens.invalidated == []


def test_execute_without_token_fails_without_calling():
    fn = MagicMock()
    executor = AuthenticatedExecutor(FakeTokens([]))

    with pytest.raises(NotAuthenticated):
        executor.execute(fn)

    fn.assert_not_called()


def test_execute_retries_once_with_fresh_token_on_auth_error():
    tokens = FakeTokens(["stale", "fresh"])
    seen = []

    def call(token):
        seen.append(token)
        if token == "stale":
            raise AuthExpired("expired", status_code=401)
        return "ok"

    assert AuthenticatedExecutor(tokens).execute(call) == "ok"
    assert seen == ["stale", "fresh"]
    assert tokens.invalidated == ["stale"]


def test_execute_always_unauthorized_gives_up_after_one_retry():
    tokens = FakeTokens(["t1", "t2", "t3"])
    fn = MagicMock(side_effect=AuthExpired("denied", status_code=403))

    with pytest.raises(AuthExpired) as exc_info:
        AuthenticatedExecutor(tokens).execute(fn)

    assert exc_info.value.status_code == 403
    assert fn.call_count == 2
    assert tokens.requests == 2
    assert tokens.invalidated == ["t1"]


def test_execute_does_not_retry_other_errors():
    tokens = FakeTokens(["t1", "t2"])
    fn = MagicMock(side_effect=RemoteUnavailable("HTTP 500"))

    with pytest.raises(RemoteUnavailable):
        AuthenticatedExecutor(tokens).execute(fn)

    assert fn.call_count == 1
    assert tokens.invalidated == []


def test_execute_raises_original_error_when_refresh_is_impossible():
    tokens = FakeTokens(["only"])
    original = AuthExpired("expired", status_code=401)

    with pytest.raises(AuthExpired) as exc_info:
        AuthenticatedExecutor(tokens).execute(MagicMock(side_effect=original))

    assert exc_info.value is original


def test_refresh_token_provider_caches_and_invalidates(settings, requests_mock):
    token_endpoint = requests_mock.post(
        settings.GOOGLE_TOKEN_URL,
        [
            {"json": {"access_token": "a1", "expires_in": 3599}},
            {"json": {"access_token": "a2", "expires_in": 3599}},
        ],
    )
    provider = RefreshTokenProvider(settings)

    assert provider.current_access_token() == "a1"
    assert provider.current_access_token() == "a1"
    provider.invalidate("someone-else")
    assert provider.current_access_token() == "a1"
    provider.invalidate("a1")
    assert provider.current_access_token() == "a2"

    assert token_endpoint.call_count == 2
    body = token_endpoint.last_request.text
    assert "grant_type=refresh_token" in body
    assert "refresh_token=refresh-token" in body


def test_refresh_token_provider_requires_credentials(settings, requests_mock):
    settings.GOOGLE_REFRESH_TOKEN = None
    provider = RefreshTokenProvider(settings)

    with pytest.raises(NotAuthenticated):
        provider.current_access_token()

    assert requests_mock.call_count == 0


def test_refresh_token_provider_rejected_grant(settings, requests_mock):
    requests_mock.post(
        settings.GOOGLE_TOKEN_URL, status_code=400, json={"error": "invalid_grant"}
    )

    with pytest.raises(NotAuthenticated):
        RefreshTokenProvider(settings).current_access_token()


def test_refresh_token_provider_network_error(settings, requests_mock):
    requests_mock.post(settings.GOOGLE_TOKEN_URL, exc=requests.exceptions.ConnectTimeout)

    with pytest.raises(RemoteUnavailable):
        RefreshTokenProvider(settings).current_access_token()
