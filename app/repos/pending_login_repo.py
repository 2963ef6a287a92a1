"""Pending-login (state token) storage.

Every backend implements consume() as ONE atomic conditional delete that
returns the removed record:

  in-memory   dict.pop()
  Redis       GETDEL
  PostgreSQL  DELETE ... RETURNING   (pg_pending_login_repo.py)

Never split it into get() followed by delete(): two replayed callbacks
could both pass the get() before either deletes.
"""

from __future__ import annotations

import json
from typing import Protocol, runtime_checkable

from app.models.pending_login import PendingLogin


@runtime_checkable
class PendingLoginRepo(Protocol):
    async def create(self, record: PendingLogin) -> None: ...

    async def consume(self, state_hash: str) -> PendingLogin | None:
        """Remove and return the record, or None if absent/already consumed."""
        ...

    async def purge_expired(self, now: int) -> int: ...


class InMemoryPendingLoginRepo:
    def __init__(self) -> None:
        self._by_state_hash: dict[str, PendingLogin] = {}

    async def create(self, record: PendingLogin) -> None:
        self._by_state_hash[record.state_hash] = record

    async def consume(self, state_hash: str) -> PendingLogin | None:
        return self._by_state_hash.pop(state_hash, None)

    async def purge_expired(self, now: int) -> int:
        expired = [h for h, r in self._by_state_hash.items() if r.is_expired(now)]
        for h in expired:
            self._by_state_hash.pop(h, None)
        return len(expired)


class RedisPendingLoginRepo:
    """Redis-backed pending logins, shared by all API instances."""

    _PREFIX = "login:state:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def create(self, record: PendingLogin) -> None:
        ttl_seconds = max(record.expires_at - record.created_at, 1)
        payload = json.dumps(
            {
                "created_at": record.created_at,
                "expires_at": record.expires_at,
                "code_verifier": record.code_verifier,
                "return_to": record.return_to,
            }
        )
        # SET with EX: value and TTL in one command, nx so a (vanishingly
        # unlikely) hash collision never overwrites a live attempt.
        await self._redis.set(
            f"{self._PREFIX}{record.state_hash}", payload, ex=ttl_seconds, nx=True
        )

    async def consume(self, state_hash: str) -> PendingLogin | None:
        raw = await self._redis.getdel(f"{self._PREFIX}{state_hash}")
        if raw is None:
            return None
        data = json.loads(raw)
        return PendingLogin(
            state_hash=state_hash,
            created_at=int(data["created_at"]),
            expires_at=int(data["expires_at"]),
            code_verifier=data.get("code_verifier"),
            return_to=data.get("return_to") or "/",
        )

    async def purge_expired(self, now: int) -> int:
        # Redis TTLs already remove expired keys.
        return 0
