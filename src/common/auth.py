"""
Authentication
==============

Access-token handling for Drive calls.

`AuthenticatedExecutor` runs a call that needs a bearer token. When the remote
rejects the token it invalidates it, fetches a fresh one and retries exactly
once; a second rejection is raised to the caller unchanged. Interactive
sign-in is out of scope: tokens come from a `TokenProvider`.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, TypeVar

import requests
import structlog

from .config import Settings
from .errors import AuthExpired, NotAuthenticated, RemoteUnavailable

log = structlog.get_logger(__name__)
T = TypeVar("T")

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"


class TokenProvider(ABC):
    """Source of OAuth access tokens."""

    @abstractmethod
    def current_access_token(self) -> str:
        """Return a usable access token or raise `NotAuthenticated`."""
        raise NotImplementedError

    @abstractmethod
    def invalidate(self, token: str) -> None:
        """Forget ``token`` so the next call obtains a fresh one."""
        raise NotImplementedError


class RefreshTokenProvider(TokenProvider):
    """
    Obtains access tokens by exchanging a stored OAuth refresh token.

    The access token is cached until it is invalidated.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._token: str | None = None

    def current_access_token(self) -> str:
        with self._lock:
            if self._token is None:
                self._token = self._exchange_refresh_token()
            return self._token

    def invalidate(self, token: str) -> None:
        with self._lock:
            if self._token == token:
                log.debug("Invalidating access token")
                self._token = None

    def _exchange_refresh_token(self) -> str:
        settings = self.settings
        if not (
            settings.GOOGLE_REFRESH_TOKEN
            and settings.GOOGLE_CLIENT_ID
            and settings.GOOGLE_CLIENT_SECRET
        ):
            raise NotAuthenticated("Not signed in: OAuth client credentials are not configured")

        try:
            response = self._session.post(
                settings.GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": settings.GOOGLE_REFRESH_TOKEN,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "scope": DRIVE_READONLY_SCOPE,
                },
                timeout=settings.REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailable(f"Token endpoint unreachable: {e}", phase="token") from e

        if response.status_code in (400, 401):
            log.warning("Refresh token was rejected", status_code=response.status_code)
            raise NotAuthenticated("Not signed in: the refresh token was rejected")
        if not response.ok:
            raise RemoteUnavailable(
                f"Token endpoint returned HTTP {response.status_code}", phase="token"
            )

        token = response.json().get("access_token")
        if not token:
            raise NotAuthenticated("Token endpoint returned no access token")
        return token


class AuthenticatedExecutor:
    """Runs token-bearing calls with a single refresh-and-retry on auth failure."""

    def __init__(self, token_provider: TokenProvider):
        self._tokens = token_provider

    def execute(self, fn: Callable[[str], T]) -> T:
        """
        Call ``fn(token)``; on `AuthExpired` refresh the token and call it once more.

        At most two calls to ``fn`` are ever made. `NotAuthenticated` from the
        first token lookup and every non-auth error propagate immediately.
        """
        token = self._tokens.current_access_token()
        try:
            return fn(token)
        except AuthExpired as e:
            log.info(
                "Auth error; invalidating token and retrying once",
                status_code=e.status_code,
                **e.context(),
            )
            self._tokens.invalidate(token)
            try:
                fresh = self._tokens.current_access_token()
            except NotAuthenticated:
                raise e
            return fn(fresh)
