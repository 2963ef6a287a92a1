from __future__ import annotations

import os
import sys
from pathlib import Path

# Settings are loaded at import time: provide a complete test environment
# before anything from app/ is imported.
_TEST_ENV = {
    "APP_ENV": "test",
    "OAUTH_PROVIDER_NAME": "testidp",
    "OAUTH_CLIENT_ID": "test-client",
    "OAUTH_CLIENT_SECRET": "test-client-secret-5f2c9a",
    "OAUTH_REDIRECT_URI": "http://testserver/callback",
    "OAUTH_AUTHORIZE_URL": "https://idp.example.com/authorize",
    "OAUTH_TOKEN_URL": "https://idp.example.com/token",
    "OAUTH_USERINFO_URL": "https://idp.example.com/userinfo",
    "OAUTH_REVOCATION_URL": "https://idp.example.com/revoke",
    "OAUTH_SCOPES": "openid email profile",
    "SESSION_SIGNING_KEY": "test-signing-key-0123456789abcdef0123456789",
    "SESSION_IDLE_TTL_SEC": "1800",
    "SESSION_MAX_TTL_SEC": "86400",
    "STATE_TTL_SEC": "300",
    # TestClient talks plain http; Secure cookies would never be sent back
    "COOKIE_SECURE": "false",
}
for _name, _value in _TEST_ENV.items():
    os.environ.setdefault(_name, _value)

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dataclasses import replace  # noqa: E402
from urllib.parse import parse_qs, urlsplit  # noqa: E402

import httpx  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import SETTINGS, Settings  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.login_flow import LoginFlow  # noqa: E402
from app.services.wiring import build_login_flow  # noqa: E402

START_TIME = 1_700_000_000


class FakeClock:
    """Injectable clock: integer seconds, moved by hand."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeProvider:
    """In-process identity provider behind httpx.MockTransport.

    Serves the token, userinfo and revocation endpoints of the test
    settings.  Each authorization-code grant and each refresh grant hands
    out a fresh numbered access/refresh token pair.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.subject = "idp-user-42"
        self.email = "ada@example.com"
        self.name = "Ada Lovelace"
        self.expires_in = 3600
        self.issue_id_token = True
        self.rotate_refresh_tokens = True
        # (status, json body) to return from the token endpoint instead
        self.token_error: tuple[int, dict] | None = None
        # raised from the transport, e.g. httpx.ConnectError
        self.network_error: Exception | None = None
        self.requests: list[httpx.Request] = []
        self.code_grants: list[dict[str, str]] = []
        self.refresh_grants: list[dict[str, str]] = []
        self.revoked: list[str] = []
        self._counter = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def id_token(self) -> str:
        claims = {
            "iss": "https://idp.example.com",
            "sub": self.subject,
            "aud": "test-client",
            "exp": self.clock() + 3600,
            "email": self.email,
            "name": self.name,
        }
        return jwt.encode(claims, "idp-signing-key-not-checked-by-client", "HS256")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_error is not None:
            raise self.network_error

        path = request.url.path
        if path == "/token":
            return self._token(request)
        if path == "/userinfo":
            auth = request.headers.get("authorization", "")
            if not auth.startswith("Bearer access-"):
                return httpx.Response(401, json={"error": "invalid_token"})
            return httpx.Response(
                200,
                json={"sub": self.subject, "email": self.email, "name": self.name},
            )
        if path == "/revoke":
            self.revoked.append(_form(request)["token"])
            return httpx.Response(200)
        return httpx.Response(404)

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = _form(request)
        if self.token_error is not None:
            status_code, body = self.token_error
            return httpx.Response(status_code, json=body)

        self._counter += 1
        body: dict[str, object] = {
            "access_token": f"access-{self._counter}",
            "token_type": "Bearer",
            "expires_in": self.expires_in,
            "scope": "openid email profile",
        }
        if form["grant_type"] == "authorization_code":
            self.code_grants.append(form)
            body["refresh_token"] = f"refresh-{self._counter}"
            if self.issue_id_token:
                body["id_token"] = self.id_token()
        else:
            self.refresh_grants.append(form)
            if self.rotate_refresh_tokens:
                body["refresh_token"] = f"refresh-{self._counter}"
        return httpx.Response(200, json=body)


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider(clock: FakeClock) -> FakeProvider:
    return FakeProvider(clock)


@pytest.fixture
def settings() -> Settings:
    return replace(SETTINGS, use_pkce=True, revoke_on_logout=False)


@pytest.fixture
def flow(settings: Settings, clock: FakeClock, provider: FakeProvider) -> LoginFlow:
    return build_login_flow(settings, clock=clock, http_client=provider.http_client())


@pytest.fixture
def client(settings: Settings, flow: LoginFlow) -> TestClient:
    return TestClient(create_app(settings=settings, flow=flow), follow_redirects=False)


def authorize_params(location: str) -> dict[str, str]:
    """Query parameters of a redirect to the provider's authorize URL."""
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


def sign_in(client: TestClient, next_path: str | None = None) -> httpx.Response:
    """Drive /login and /callback like a browser; returns the callback response."""
    params = {"next": next_path} if next_path else None
    login = client.get("/login", params=params)
    state = authorize_params(login.headers["location"])["state"]
    return client.get("/callback", params={"code": "auth-code-1", "state": state})
