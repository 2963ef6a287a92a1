from __future__ import annotations

import asyncio

from app.repos.user_identity_repo import InMemoryUserIdentityRepo
from app.services.identity_service import IdentityResolver
from tests.conftest import FakeClock


def _resolver(clock: FakeClock) -> IdentityResolver:
    return IdentityResolver(InMemoryUserIdentityRepo(), provider="testidp", clock=clock)


def test_first_login_creates_identity(clock: FakeClock) -> None:
    resolver = _resolver(clock)
    identity = asyncio.run(
        resolver.resolve("sub-1", {"email": "a@example.com", "name": "A"})
    )
    assert identity.provider == "testidp"
    assert identity.subject == "sub-1"
    assert identity.email == "a@example.com"
    assert identity.created_at == clock.now
    assert asyncio.run(resolver.get(str(identity.id))) == identity


def test_returning_user_keeps_id_and_refreshes_profile(clock: FakeClock) -> None:
    resolver = _resolver(clock)
    first = asyncio.run(resolver.resolve("sub-1", {"name": "Old Name"}))
    clock.advance(60)
    second = asyncio.run(
        resolver.resolve("sub-1", {"name": "New Name", "avatar_url": "https://x/a.png"})
    )
    assert second.id == first.id
    assert second.name == "New Name"
    assert second.picture == "https://x/a.png"
    assert second.created_at == first.created_at


def test_missing_claims_keep_cached_values(clock: FakeClock) -> None:
    resolver = _resolver(clock)
    asyncio.run(resolver.resolve("sub-1", {"email": "a@example.com"}))
    again = asyncio.run(resolver.resolve("sub-1", {}))
    assert again.email == "a@example.com"


def test_get_with_malformed_id_returns_none(clock: FakeClock) -> None:
    assert asyncio.run(_resolver(clock).get("not-a-uuid")) is None
