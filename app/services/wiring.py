"""Assemble a LoginFlow from Settings and whichever backends are configured.

  store            REDIS_URL set       DATABASE_URL set     neither
  pending logins   Redis               PostgreSQL           memory
  sessions         Redis               PostgreSQL           memory
  token sets       (PostgreSQL)        PostgreSQL           memory
  user identities  (PostgreSQL)        PostgreSQL           memory

Redis wins for the short-lived stores when both are configured.  Token
sets and identities are durable and never go to Redis.
"""

from __future__ import annotations

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, utc_now
from app.core.config import Settings
from app.core.secrets import SecretStore
from app.repos.pending_login_repo import (
    InMemoryPendingLoginRepo,
    PendingLoginRepo,
    RedisPendingLoginRepo,
)
from app.repos.pg_pending_login_repo import PgPendingLoginRepo
from app.repos.pg_session_repo import PgSessionRepo
from app.repos.pg_token_set_repo import PgTokenSetRepo
from app.repos.pg_user_identity_repo import PgUserIdentityRepo
from app.repos.session_repo import InMemorySessionRepo, RedisSessionRepo, SessionRepo
from app.repos.token_set_repo import InMemoryTokenSetRepo, TokenSetRepo
from app.repos.user_identity_repo import InMemoryUserIdentityRepo, UserIdentityRepo
from app.services.credential_store import CredentialStore
from app.services.identity_service import IdentityResolver
from app.services.login_flow import LoginFlow
from app.services.session_service import SessionManager
from app.services.state_service import StateTokenManager
from app.services.token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)


def build_login_flow(
    settings: Settings,
    *,
    clock: Clock = utc_now,
    http_client: httpx.AsyncClient | None = None,
    redis_client=None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> LoginFlow:
    secret_store = SecretStore.from_settings(settings)

    pending_repo: PendingLoginRepo
    session_repo: SessionRepo
    if redis_client is not None:
        pending_repo = RedisPendingLoginRepo(redis_client)
        session_repo = RedisSessionRepo(redis_client)
    elif session_factory is not None:
        pending_repo = PgPendingLoginRepo(session_factory)
        session_repo = PgSessionRepo(session_factory)
    else:
        pending_repo = InMemoryPendingLoginRepo()
        session_repo = InMemorySessionRepo()

    token_repo: TokenSetRepo
    identity_repo: UserIdentityRepo
    if session_factory is not None:
        token_repo = PgTokenSetRepo(session_factory, secret_store.cipher())
        identity_repo = PgUserIdentityRepo(session_factory)
    else:
        token_repo = InMemoryTokenSetRepo()
        identity_repo = InMemoryUserIdentityRepo()

    logger.info(
        "Stores: pending=%s sessions=%s tokens=%s identities=%s",
        type(pending_repo).__name__,
        type(session_repo).__name__,
        type(token_repo).__name__,
        type(identity_repo).__name__,
    )

    exchange = TokenExchangeClient.from_settings(
        settings, secret_store, clock=clock, http_client=http_client
    )
    return LoginFlow(
        secret_store=secret_store,
        states=StateTokenManager(
            pending_repo, ttl_sec=settings.state_ttl_sec, clock=clock
        ),
        exchange=exchange,
        credentials=CredentialStore(
            token_repo,
            exchange,
            refresh_margin_sec=settings.refresh_margin_sec,
            clock=clock,
        ),
        sessions=SessionManager(
            session_repo,
            secret_store,
            idle_ttl_sec=settings.session_idle_ttl_sec,
            max_ttl_sec=settings.session_max_ttl_sec,
            single_per_user=settings.session_single_per_user,
            clock=clock,
        ),
        identities=IdentityResolver(
            identity_repo, provider=settings.provider_name, clock=clock
        ),
        authorize_url=settings.authorize_url,
        scopes=settings.scopes,
        use_pkce=settings.use_pkce,
        revoke_on_logout=settings.revoke_on_logout,
    )
