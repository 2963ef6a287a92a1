from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import sign_in


def test_logout_revokes_session_and_clears_cookie(client: TestClient) -> None:
    sign_in(client)
    session_id = client.cookies.get("session")

    resp = client.post("/logout")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/"
    cookie = resp.headers["set-cookie"].lower()
    assert cookie.startswith("session=")
    assert "max-age=0" in cookie

    client.cookies.clear()
    resp = client.get("/me", headers={"Cookie": f"session={session_id}"})
    assert resp.status_code == 401


def test_logout_is_idempotent(client: TestClient) -> None:
    assert client.post("/logout").status_code == 302
    client.cookies.set("session", "already-gone")
    assert client.post("/logout").status_code == 302


def test_logout_requires_post(client: TestClient) -> None:
    assert client.get("/logout").status_code == 405
