"""Demo: walk the browser sign-in flow against a fake identity provider.

Run with:
    python scripts/demo_sign_in.py

No real provider is contacted: the token and userinfo endpoints are served
by an httpx.MockTransport, everything else is the real app.
"""

from __future__ import annotations

import os
from urllib.parse import parse_qs, urlparse

for _name, _value in {
    "APP_ENV": "dev",
    "OAUTH_PROVIDER_NAME": "demo-idp",
    "OAUTH_CLIENT_ID": "demo-client",
    "OAUTH_CLIENT_SECRET": "demo-secret",
    "OAUTH_REDIRECT_URI": "http://testserver/callback",
    "OAUTH_AUTHORIZE_URL": "https://idp.invalid/authorize",
    "OAUTH_TOKEN_URL": "https://idp.invalid/token",
    "OAUTH_USERINFO_URL": "https://idp.invalid/userinfo",
    "OAUTH_SCOPES": "openid email profile",
    "SESSION_SIGNING_KEY": "demo-signing-key-not-for-production-use",
    "SESSION_IDLE_TTL_SEC": "1800",
    "SESSION_MAX_TTL_SEC": "86400",
    "STATE_TTL_SEC": "300",
}.items():
    os.environ.setdefault(_name, _value)

import httpx  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import SETTINGS  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.wiring import build_login_flow  # noqa: E402


def _provider(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/token":
        return httpx.Response(
            200,
            json={
                "access_token": "demo-access",
                "refresh_token": "demo-refresh",
                "expires_in": 3600,
                "token_type": "Bearer",
            },
        )
    if request.url.path == "/userinfo":
        return httpx.Response(
            200,
            json={"sub": "demo-user", "email": "demo@example.com", "name": "Demo"},
        )
    return httpx.Response(404)


def main() -> None:
    http = httpx.AsyncClient(transport=httpx.MockTransport(_provider))
    flow = build_login_flow(SETTINGS, http_client=http)
    client = TestClient(create_app(SETTINGS, flow), follow_redirects=False)

    # ── Step 1: anonymous visit ─────────────────────────────────────
    r = client.get("/", headers={"Accept": "text/html"})
    print(f"1. GET  /                  → {r.status_code}  {r.headers['location']}")

    # ── Step 2: start sign-in ───────────────────────────────────────
    r = client.get("/login", params={"next": "/me"})
    query = parse_qs(urlparse(r.headers["location"]).query)
    state = query["state"][0]
    print(
        f"2. GET  /login             → {r.status_code}  "
        f"challenge_method={query.get('code_challenge_method', ['-'])[0]}"
    )

    # ── Step 3: forged callback ─────────────────────────────────────
    r = client.get("/callback", params={"code": "x", "state": "forged"})
    print(f"3. GET  /callback (forged) → {r.status_code}  (rejected)")

    # ── Step 4: provider redirects back ─────────────────────────────
    r = client.get("/callback", params={"code": "demo-code", "state": state})
    print(f"4. GET  /callback          → {r.status_code}  {r.headers['location']}")
    assert r.cookies.get("session"), "no session cookie!"

    # ── Step 5: replay the same state ───────────────────────────────
    r = client.get("/callback", params={"code": "demo-code", "state": state})
    print(f"5. GET  /callback (replay) → {r.status_code}  (state already used)")

    # ── Step 6: signed-in pages ─────────────────────────────────────
    r = client.get("/me")
    print(f"6. GET  /me                → {r.status_code}  {r.json()}")

    # ── Step 7: sign out ────────────────────────────────────────────
    r = client.post("/logout")
    print(f"7. POST /logout            → {r.status_code}")
    r = client.get("/me", headers={"Accept": "application/json"})
    print(f"8. GET  /me (signed out)   → {r.status_code}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
