"""Local sessions: issue, validate (with sliding expiry), revoke.

The browser holds a random 256-bit session id in an HttpOnly cookie.
Repos only ever see HMAC(signing_key, session_id), so read access to the
session store is not enough to hijack a session.

Expiry has two limits:
  idle      each successful validate() pushes expires_at to now + idle_ttl
  absolute  never beyond created_at + max_ttl, however active the user is
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from app.core.clock import Clock, utc_now
from app.core.errors import SessionExpired, SessionNotFound
from app.core.metrics import SESSION_EVENTS
from app.core.secrets import SecretStore
from app.models.session import Session
from app.repos.session_repo import SessionRepo

logger = logging.getLogger(__name__)


def _new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionManager:
    def __init__(
        self,
        repo: SessionRepo,
        secret_store: SecretStore,
        *,
        idle_ttl_sec: int,
        max_ttl_sec: int,
        single_per_user: bool = False,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_session_id,
    ) -> None:
        if idle_ttl_sec <= 0 or max_ttl_sec <= 0:
            raise ValueError("session TTLs must be positive")
        if idle_ttl_sec > max_ttl_sec:
            raise ValueError("idle_ttl_sec must not exceed max_ttl_sec")
        self._repo = repo
        self._secrets = secret_store
        self._idle_ttl = idle_ttl_sec
        self._max_ttl = max_ttl_sec
        self._single_per_user = single_per_user
        self._clock = clock
        self._id_factory = id_factory

    async def create(self, user_id: str) -> str:
        """Start a session for user_id and return the raw id for the cookie.

        Under the single-session policy the user's other sessions are revoked
        once the new one exists, so the user is never left without one.
        """
        session_id = self._id_factory()
        now = self._clock()
        await self._repo.create(
            Session(
                session_hash=self._secrets.session_key(session_id),
                user_id=user_id,
                created_at=now,
                last_seen_at=now,
                expires_at=now + min(self._idle_ttl, self._max_ttl),
            )
        )
        SESSION_EVENTS.labels(event="created").inc()
        logger.info("Session created user=%s", user_id)
        if self._single_per_user:
            await self.revoke_all(user_id, keep=session_id)
        return session_id

    async def validate(self, session_id: str) -> str:
        """Return the session's user id and slide its expiry.

        Raises SessionNotFound for unknown or revoked ids and SessionExpired
        once either the idle or the absolute limit has passed.
        """
        if not session_id:
            raise SessionNotFound("no session")
        session_hash = self._secrets.session_key(session_id)
        record = await self._repo.get(session_hash)
        if record is None:
            SESSION_EVENTS.labels(event="not_found").inc()
            raise SessionNotFound("unknown session")

        now = self._clock()
        if record.is_expired(now, self._max_ttl):
            await self._repo.delete(session_hash)
            SESSION_EVENTS.labels(event="expired").inc()
            logger.info("Session expired user=%s", record.user_id)
            raise SessionExpired("session expired")

        # Two concurrent requests may both touch; the later write wins and
        # both values are valid.
        await self._repo.touch(
            session_hash,
            last_seen_at=now,
            expires_at=min(now + self._idle_ttl, record.created_at + self._max_ttl),
        )
        return record.user_id

    async def revoke(self, session_id: str) -> None:
        """Delete the session. Unknown ids are ignored."""
        if not session_id:
            return
        if await self._repo.delete(self._secrets.session_key(session_id)):
            SESSION_EVENTS.labels(event="revoked").inc()

    async def revoke_all(self, user_id: str, *, keep: str | None = None) -> int:
        """Delete every session of user_id, except the one whose raw id is keep."""
        keep_hash = self._secrets.session_key(keep) if keep else None
        count = await self._repo.delete_for_user(user_id, keep=keep_hash)
        if count:
            SESSION_EVENTS.labels(event="revoked").inc(count)
            logger.info("Revoked %d session(s) user=%s", count, user_id)
        return count

    async def sweep(self) -> int:
        return await self._repo.purge_expired(self._clock())
