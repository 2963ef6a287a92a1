from __future__ import annotations

import json
from dataclasses import replace
from typing import Protocol, runtime_checkable

from app.models.session import Session


@runtime_checkable
class SessionRepo(Protocol):
    async def create(self, record: Session) -> None: ...
    async def get(self, session_hash: str) -> Session | None: ...

    async def touch(
        self, session_hash: str, *, last_seen_at: int, expires_at: int
    ) -> None:
        """Slide a session's expiry. No-op if it was deleted meanwhile."""
        ...

    async def delete(self, session_hash: str) -> bool: ...

    async def delete_for_user(self, user_id: str, *, keep: str | None = None) -> int:
        """Delete every session of user_id except the one hashed as *keep*."""
        ...

    async def purge_expired(self, now: int) -> int: ...


class InMemorySessionRepo:
    def __init__(self) -> None:
        self._by_hash: dict[str, Session] = {}

    async def create(self, record: Session) -> None:
        self._by_hash[record.session_hash] = record

    async def get(self, session_hash: str) -> Session | None:
        return self._by_hash.get(session_hash)

    async def touch(
        self, session_hash: str, *, last_seen_at: int, expires_at: int
    ) -> None:
        current = self._by_hash.get(session_hash)
        if current is None:
            return
        self._by_hash[session_hash] = replace(
            current, last_seen_at=last_seen_at, expires_at=expires_at
        )

    async def delete(self, session_hash: str) -> bool:
        return self._by_hash.pop(session_hash, None) is not None

    async def delete_for_user(self, user_id: str, *, keep: str | None = None) -> int:
        doomed = [
            h for h, s in self._by_hash.items() if s.user_id == user_id and h != keep
        ]
        for h in doomed:
            self._by_hash.pop(h, None)
        return len(doomed)

    async def purge_expired(self, now: int) -> int:
        expired = [h for h, s in self._by_hash.items() if now >= s.expires_at]
        for h in expired:
            self._by_hash.pop(h, None)
        return len(expired)


class RedisSessionRepo:
    """Redis-backed sessions.

    Layout:
      session:{hash}        JSON record, TTL = time left until expires_at
      session:user:{uid}    SET of that user's session hashes (for logout-all
                            and the single-session policy)

    The per-user index may briefly list hashes whose record already
    expired; readers treat a missing record as "gone".
    """

    _PREFIX = "session:"
    _USER_PREFIX = "session:user:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _key(self, session_hash: str) -> str:
        return f"{self._PREFIX}{session_hash}"

    def _user_key(self, user_id: str) -> str:
        return f"{self._USER_PREFIX}{user_id}"

    @staticmethod
    def _dump(record: Session) -> str:
        return json.dumps(
            {
                "user_id": record.user_id,
                "created_at": record.created_at,
                "last_seen_at": record.last_seen_at,
                "expires_at": record.expires_at,
            }
        )

    async def create(self, record: Session) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(
                self._key(record.session_hash),
                self._dump(record),
                exat=record.expires_at,
            )
            pipe.sadd(self._user_key(record.user_id), record.session_hash)
            # The index must outlive its longest session: extend (gt) an
            # existing TTL, or set one (nx) on a freshly created set.
            pipe.expireat(self._user_key(record.user_id), record.expires_at, gt=True)
            pipe.expireat(self._user_key(record.user_id), record.expires_at, nx=True)
            await pipe.execute()

    async def get(self, session_hash: str) -> Session | None:
        raw = await self._redis.get(self._key(session_hash))
        if raw is None:
            return None
        data = json.loads(raw)
        return Session(
            session_hash=session_hash,
            user_id=data["user_id"],
            created_at=int(data["created_at"]),
            last_seen_at=int(data["last_seen_at"]),
            expires_at=int(data["expires_at"]),
        )

    async def touch(
        self, session_hash: str, *, last_seen_at: int, expires_at: int
    ) -> None:
        current = await self.get(session_hash)
        if current is None:
            return
        updated = replace(current, last_seen_at=last_seen_at, expires_at=expires_at)
        # xx: only overwrite a key that still exists, so a concurrent revoke wins
        await self._redis.set(
            self._key(session_hash), self._dump(updated), exat=expires_at, xx=True
        )
        await self._redis.expireat(
            self._user_key(current.user_id), expires_at, gt=True
        )

    async def delete(self, session_hash: str) -> bool:
        current = await self.get(session_hash)
        deleted = await self._redis.delete(self._key(session_hash))
        if current is not None:
            await self._redis.srem(self._user_key(current.user_id), session_hash)
        return bool(deleted)

    async def delete_for_user(self, user_id: str, *, keep: str | None = None) -> int:
        hashes = await self._redis.smembers(self._user_key(user_id))
        doomed = [h for h in hashes if h != keep]
        if not doomed:
            return 0
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(*(self._key(h) for h in doomed))
            pipe.srem(self._user_key(user_id), *doomed)
            deleted, _ = await pipe.execute()
        return int(deleted)

    async def purge_expired(self, now: int) -> int:
        # Redis TTLs already remove expired keys.
        return 0
