"""Redis-backed pending logins and sessions against a live Redis.

Prerequisites:
  docker run --rm -p 6379:6379 redis:7
  REDIS_URL=redis://localhost:6379/15 pytest -m docker -v

Uses its own connection (db 15 recommended) and removes the keys it
creates.  Skipped when REDIS_URL is not set.
"""

from __future__ import annotations

import asyncio
import os
import time
import uuid

import pytest
import redis.asyncio as aioredis

from app.models.pending_login import PendingLogin
from app.models.session import Session
from app.repos.pending_login_repo import RedisPendingLoginRepo
from app.repos.session_repo import RedisSessionRepo

pytestmark = [
    pytest.mark.docker,
    pytest.mark.skipif(not os.environ.get("REDIS_URL"), reason="REDIS_URL not set"),
]


async def _with_redis(body) -> None:
    client = aioredis.from_url(os.environ["REDIS_URL"], decode_responses=True)
    try:
        await body(client)
    finally:
        await client.aclose()


def _pending(now: int) -> PendingLogin:
    return PendingLogin.new(
        state_hash=f"test-{uuid.uuid4().hex}",
        now=now,
        ttl_sec=60,
        code_verifier="v" * 43,
        return_to="/me",
    )


def test_pending_login_consumed_exactly_once() -> None:
    async def body(client) -> None:
        repo = RedisPendingLoginRepo(client)
        record = _pending(int(time.time()))
        await repo.create(record)

        results = await asyncio.gather(
            *(repo.consume(record.state_hash) for _ in range(5))
        )

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert winners[0].code_verifier == record.code_verifier
        assert winners[0].return_to == "/me"

    asyncio.run(_with_redis(body))


def test_pending_login_key_carries_ttl() -> None:
    async def body(client) -> None:
        repo = RedisPendingLoginRepo(client)
        record = _pending(int(time.time()))
        await repo.create(record)
        key = f"login:state:{record.state_hash}"
        try:
            ttl = await client.ttl(key)
            assert 0 < ttl <= 60
        finally:
            await client.delete(key)

    asyncio.run(_with_redis(body))


def test_session_round_trip_touch_and_revoke_all() -> None:
    async def body(client) -> None:
        repo = RedisSessionRepo(client)
        now = int(time.time())
        user_id = f"user-{uuid.uuid4().hex}"
        first = Session(f"s1-{uuid.uuid4().hex}", user_id, now, now, now + 600)
        second = Session(f"s2-{uuid.uuid4().hex}", user_id, now, now, now + 600)
        await repo.create(first)
        await repo.create(second)

        await repo.touch(first.session_hash, last_seen_at=now + 5, expires_at=now + 900)
        touched = await repo.get(first.session_hash)
        assert touched is not None
        assert touched.expires_at == now + 900

        removed = await repo.delete_for_user(user_id, keep=first.session_hash)
        assert removed == 1
        assert await repo.get(second.session_hash) is None
        assert await repo.delete(first.session_hash) is True
        assert await repo.get(first.session_hash) is None

    asyncio.run(_with_redis(body))
