from __future__ import annotations

import httpx
from fastapi.testclient import TestClient

from tests.conftest import FakeProvider, sign_in


def test_home_redirects_anonymous_to_login(client: TestClient) -> None:
    resp = client.get("/")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


def test_home_greets_signed_in_user(client: TestClient) -> None:
    sign_in(client)
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Ada Lovelace" in resp.text
    assert 'action="/logout"' in resp.text


def test_me_returns_profile(client: TestClient) -> None:
    sign_in(client)
    data = client.get("/me").json()
    assert data["provider"] == "testidp"
    assert data["email"] == "ada@example.com"
    assert data["name"] == "Ada Lovelace"


def test_me_anonymous_api_client_gets_401(client: TestClient) -> None:
    resp = client.get("/me", headers={"Accept": "application/json"})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Not signed in"}


def test_me_anonymous_browser_is_sent_to_login(client: TestClient) -> None:
    resp = client.get("/me", headers={"Accept": "text/html,application/xhtml+xml"})
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


def test_userinfo_uses_provider_access_token(
    client: TestClient, provider: FakeProvider
) -> None:
    sign_in(client)
    resp = client.get("/me/userinfo")
    assert resp.status_code == 200
    assert resp.json()["sub"] == provider.subject
    assert provider.requests[-1].headers["authorization"] == "Bearer access-1"


def test_userinfo_refreshes_expired_token(
    client: TestClient, provider: FakeProvider
) -> None:
    provider.expires_in = 30
    sign_in(client)
    resp = client.get("/me/userinfo")
    assert resp.status_code == 200
    assert len(provider.refresh_grants) == 1
    assert provider.requests[-1].headers["authorization"] == "Bearer access-2"


def test_userinfo_reauth_required_signs_user_out(
    client: TestClient, provider: FakeProvider
) -> None:
    provider.expires_in = 30
    sign_in(client)
    session_id = client.cookies.get("session")
    provider.token_error = (400, {"error": "invalid_grant"})

    resp = client.get("/me/userinfo")
    assert resp.status_code == 401
    assert "max-age=0" in resp.headers["set-cookie"].lower()
    client.cookies.clear()
    resp = client.get("/me", headers={"Cookie": f"session={session_id}"})
    assert resp.status_code == 401


def test_userinfo_provider_down_is_bad_gateway(
    client: TestClient, provider: FakeProvider
) -> None:
    sign_in(client)
    provider.network_error = httpx.ConnectError("down")
    assert client.get("/me/userinfo").status_code == 502


def test_unknown_page_in_browser_renders_html_error(client: TestClient) -> None:
    resp = client.get("/no/such/page", headers={"Accept": "text/html"})
    assert resp.status_code == 404
    assert resp.headers["content-type"].startswith("text/html")
    assert "Not Found" in resp.text


def test_unknown_page_for_api_client_stays_json(client: TestClient) -> None:
    resp = client.get("/no/such/page", headers={"Accept": "application/json"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not Found"}
