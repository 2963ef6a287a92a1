"""Per-user provider credentials with transparent refresh.

get_valid_access_token() is what request handlers call before talking to
the provider on a user's behalf.  It hands back the stored access token
while that token has more than refresh_margin_sec left, and otherwise
refreshes it first.

SINGLE-FLIGHT REFRESH
----------------------
A page that fires ten API calls just after the access token expired must
not cause ten refresh grants: providers that rotate refresh tokens accept
the old one exactly once, so nine of those calls would fail and could get
the whole grant revoked.  Within this process at most one refresh per user
is in flight; everybody else awaits the same asyncio.Task and gets its
result (or its exception).  Different users never wait on each other.

The refresh task reads the store again before calling the provider, so a
caller that arrives just after a refresh finished reuses the new tokens
instead of replaying the rotated refresh token.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from app.core.clock import Clock, utc_now
from app.core.errors import (
    ExchangeNetworkError,
    ProviderRejectedError,
    ReauthRequired,
    RefreshInvalidError,
)
from app.core.metrics import TOKEN_REFRESHES
from app.models.token_set import TokenSet
from app.repos.token_set_repo import TokenSetRepo
from app.services.token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN_SEC = 60


class CredentialStore:
    def __init__(
        self,
        repo: TokenSetRepo,
        exchange: TokenExchangeClient,
        *,
        refresh_margin_sec: int = DEFAULT_REFRESH_MARGIN_SEC,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._exchange = exchange
        self._margin = refresh_margin_sec
        self._clock = clock
        self._inflight: dict[str, asyncio.Task[TokenSet]] = {}

    async def put(self, user_id: str, tokens: TokenSet) -> None:
        await self._repo.put(user_id, tokens)

    async def get(self, user_id: str) -> TokenSet | None:
        return await self._repo.get(user_id)

    async def delete(self, user_id: str) -> None:
        await self._repo.delete(user_id)

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return an access token good for at least the refresh margin.

        Raises ReauthRequired when the user has no usable credentials left,
        including when the provider refuses the refresh grant.  Only
        ExchangeNetworkError and a 5xx ProviderRejectedError propagate
        unchanged; the stored set is then kept for a later retry.
        """
        tokens = await self._repo.get(user_id)
        if tokens is None:
            raise ReauthRequired(user_id, "no stored credentials")
        if not tokens.expires_within(self._margin, self._clock()):
            return tokens.access_token
        refreshed = await self._refresh_single_flight(user_id)
        return refreshed.access_token

    async def _refresh_single_flight(self, user_id: str) -> TokenSet:
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.create_task(self._refresh(user_id))
            self._inflight[user_id] = task
            task.add_done_callback(partial(self._forget, user_id))
        else:
            TOKEN_REFRESHES.labels(result="coalesced").inc()
        # shield: a cancelled caller must not cancel the refresh for the others
        return await asyncio.shield(task)

    def _forget(self, user_id: str, task: asyncio.Task[TokenSet]) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away.
            task.exception()

    async def _refresh(self, user_id: str) -> TokenSet:
        current = await self._repo.get(user_id)
        if current is None:
            raise ReauthRequired(user_id, "no stored credentials")
        if not current.expires_within(self._margin, self._clock()):
            return current
        if not current.refresh_token:
            await self._repo.delete(user_id)
            TOKEN_REFRESHES.labels(result="reauth_required").inc()
            logger.info("Access token expired without refresh token user=%s", user_id)
            raise ReauthRequired(user_id, "no refresh token")

        try:
            fresh = await self._exchange.refresh(
                current.refresh_token, scope=current.scope
            )
        except RefreshInvalidError as exc:
            await self._repo.delete(user_id)
            TOKEN_REFRESHES.labels(result="reauth_required").inc()
            logger.info(
                "Refresh token rejected user=%s error=%s", user_id, exc.error_code
            )
            raise ReauthRequired(user_id, "refresh token rejected") from exc
        except ExchangeNetworkError:
            TOKEN_REFRESHES.labels(result="network_error").inc()
            raise
        except ProviderRejectedError as exc:
            if _is_transient(exc):
                TOKEN_REFRESHES.labels(result="provider_rejected").inc()
                raise
            # Replaying the same refresh token would only be rejected again
            await self._repo.delete(user_id)
            TOKEN_REFRESHES.labels(result="reauth_required").inc()
            logger.info(
                "Refresh rejected user=%s status=%s error=%s",
                user_id,
                exc.status_code,
                exc.error_code,
            )
            raise ReauthRequired(user_id, "refresh rejected by provider") from exc

        await self._repo.put(user_id, fresh)
        TOKEN_REFRESHES.labels(result="success").inc()
        logger.info("Refreshed access token user=%s", user_id)
        return fresh


def _is_transient(exc: ProviderRejectedError) -> bool:
    """A 5xx from the token endpoint is the provider's fault, not the grant's."""
    return exc.status_code is not None and exc.status_code >= 500
