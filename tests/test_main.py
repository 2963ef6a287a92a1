from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from app.services.login_flow import LoginFlow

client = TestClient(app, follow_redirects=False)


def test_module_app_is_wired_with_a_login_flow() -> None:
    assert isinstance(app.state.login_flow, LoginFlow)


def test_module_app_serves_health() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_module_app_routes() -> None:
    paths = {getattr(route, "path", None) for route in app.routes}
    for path in ("/", "/login", "/callback", "/logout", "/me", "/me/userinfo"):
        assert path in paths


def test_docs_disabled_outside_dev() -> None:
    # APP_ENV=test in the test environment
    assert client.get("/docs").status_code == 404
