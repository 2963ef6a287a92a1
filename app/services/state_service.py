"""Anti-forgery state tokens for the authorization redirect.

Each login attempt gets a fresh random token that travels to the provider
in the authorize URL and comes back on the callback.  The callback is only
honoured if the token is one we issued, has not been used, and has not
expired.  That is what stops a third party from splicing their own
authorization code into a victim's browser (login CSRF).

The raw token is never stored: repos are keyed by its SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable

from app.core.clock import Clock, utc_now
from app.core.errors import InvalidState
from app.core.logging import fingerprint
from app.core.metrics import STATE_TOKENS
from app.models.pending_login import PendingLogin
from app.repos.pending_login_repo import PendingLoginRepo

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SEC = 600


def _new_state_token() -> str:
    # 32 bytes = 256 bits of entropy
    return secrets.token_urlsafe(32)


def hash_state(state_token: str) -> str:
    return hashlib.sha256(state_token.encode()).hexdigest()


class StateTokenManager:
    def __init__(
        self,
        repo: PendingLoginRepo,
        *,
        ttl_sec: int = DEFAULT_STATE_TTL_SEC,
        clock: Clock = utc_now,
        token_factory: Callable[[], str] = _new_state_token,
    ) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._repo = repo
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._token_factory = token_factory

    async def issue(
        self, *, code_verifier: str | None = None, return_to: str = "/"
    ) -> str:
        """Record a new pending login and return its raw state token."""
        token = self._token_factory()
        record = PendingLogin.new(
            state_hash=hash_state(token),
            now=self._clock(),
            ttl_sec=self._ttl_sec,
            code_verifier=code_verifier,
            return_to=return_to,
        )
        await self._repo.create(record)
        STATE_TOKENS.labels(result="issued").inc()
        logger.debug("Issued state=%s", fingerprint(token))
        return token

    async def consume(self, state_token: str) -> PendingLogin:
        """Invalidate the token and return its pending login.

        Raises InvalidState if the token was never issued, was already
        consumed, or has expired.  The record is removed before its expiry
        is checked, so an expired token is gone either way.
        """
        if not state_token:
            STATE_TOKENS.labels(result="rejected").inc()
            raise InvalidState("missing state")

        record = await self._repo.consume(hash_state(state_token))
        if record is None:
            STATE_TOKENS.labels(result="rejected").inc()
            logger.warning("Unknown or replayed state=%s", fingerprint(state_token))
            raise InvalidState("unknown or already used state")

        if record.is_expired(self._clock()):
            STATE_TOKENS.labels(result="rejected").inc()
            logger.info("Expired state=%s", fingerprint(state_token))
            raise InvalidState("state expired")

        STATE_TOKENS.labels(result="consumed").inc()
        return record

    async def sweep(self) -> int:
        return await self._repo.purge_expired(self._clock())
