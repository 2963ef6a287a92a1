"""Authorization Code sign-in, start to finish.

    ANONYMOUS --begin_login--> LOGIN_PENDING --handle_callback--> AUTHENTICATED
        ^                                                              |
        +------------- logout / credentials no longer refreshable -----+

LoginFlow owns no storage of its own.  It sequences the state manager,
the exchange client, the identity resolver, the credential store and the
session manager, and decides what gets written when:

  - the state token is consumed before anything else, so a forged or
    replayed callback never reaches the provider
  - nothing is persisted unless the code exchange succeeded
  - a session the browser already had is revoked when a new one is issued
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode, urlsplit

from app.core.errors import (
    ExchangeNetworkError,
    InvalidState,
    ProviderRejectedError,
    ReauthRequired,
    SessionError,
    SessionNotFound,
)
from app.core.metrics import LOGIN_ATTEMPTS
from app.core.secrets import SecretStore
from app.models.user_identity import UserIdentity
from app.services.credential_store import CredentialStore
from app.services.identity_service import IdentityResolver
from app.services.pkce_service import (
    CHALLENGE_METHOD,
    compute_code_challenge,
    generate_code_verifier,
)
from app.services.session_service import SessionManager
from app.services.state_service import StateTokenManager
from app.services.token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    ANONYMOUS = "anonymous"
    LOGIN_PENDING = "login_pending"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True, slots=True)
class LoginRedirect:
    url: str = field(repr=False)
    state_token: str = field(repr=False)
    state: FlowState = FlowState.LOGIN_PENDING


@dataclass(frozen=True, slots=True)
class LoginResult:
    session_id: str = field(repr=False)
    user_id: str
    return_to: str = "/"
    state: FlowState = FlowState.AUTHENTICATED


def safe_return_path(raw: str | None) -> str:
    """Accept only same-origin absolute paths; anything else becomes "/"."""
    if not raw or not raw.startswith("/") or raw.startswith("//"):
        return "/"
    if "\\" in raw or any(ord(ch) < 0x20 for ch in raw):
        return "/"
    parts = urlsplit(raw)
    if parts.scheme or parts.netloc:
        return "/"
    return raw


class LoginFlow:
    def __init__(
        self,
        *,
        secret_store: SecretStore,
        states: StateTokenManager,
        exchange: TokenExchangeClient,
        credentials: CredentialStore,
        sessions: SessionManager,
        identities: IdentityResolver,
        authorize_url: str,
        scopes: tuple[str, ...],
        use_pkce: bool = True,
        revoke_on_logout: bool = False,
    ) -> None:
        self._secrets = secret_store
        self.states = states
        self.exchange = exchange
        self.credentials = credentials
        self.sessions = sessions
        self.identities = identities
        self._authorize_url = authorize_url
        self._scopes = scopes
        self._use_pkce = use_pkce
        self._revoke_on_logout = revoke_on_logout

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def begin_login(self, return_to: str | None = None) -> LoginRedirect:
        """Create a pending login and build the provider authorize URL."""
        code_verifier = generate_code_verifier() if self._use_pkce else None
        state_token = await self.states.issue(
            code_verifier=code_verifier, return_to=safe_return_path(return_to)
        )

        params = {
            "response_type": "code",
            "client_id": self._secrets.client_id,
            "redirect_uri": self._secrets.redirect_uri,
            "scope": " ".join(self._scopes),
            "state": state_token,
        }
        if code_verifier is not None:
            params["code_challenge"] = compute_code_challenge(code_verifier)
            params["code_challenge_method"] = CHALLENGE_METHOD

        sep = "&" if "?" in self._authorize_url else "?"
        LOGIN_ATTEMPTS.labels(outcome="started").inc()
        return LoginRedirect(
            url=f"{self._authorize_url}{sep}{urlencode(params)}",
            state_token=state_token,
        )

    async def handle_callback(
        self,
        code: str | None,
        state: str | None,
        *,
        error: str | None = None,
        error_description: str | None = None,
        previous_session_id: str | None = None,
    ) -> LoginResult:
        """Finish a login from the provider's redirect back to us.

        Raises InvalidState (bad/expired/replayed state), ProviderRejectedError
        (user denied consent, or the provider refused the code) or
        ExchangeNetworkError (provider unreachable, safe to retry the login).
        """
        try:
            pending = await self.states.consume(state or "")
        except InvalidState:
            LOGIN_ATTEMPTS.labels(outcome="invalid_state").inc()
            raise

        if error or not code:
            LOGIN_ATTEMPTS.labels(outcome="provider_rejected").inc()
            logger.info("Provider returned error=%s", error or "missing_code")
            raise ProviderRejectedError(
                "sign-in was not completed at the provider",
                error_code=error or "invalid_request",
                description=error_description,
            )

        try:
            result = await self.exchange.exchange_code(
                code, self._secrets.redirect_uri, code_verifier=pending.code_verifier
            )
        except ExchangeNetworkError:
            LOGIN_ATTEMPTS.labels(outcome="network_error").inc()
            raise
        except ProviderRejectedError:
            LOGIN_ATTEMPTS.labels(outcome="provider_rejected").inc()
            raise

        identity = await self.identities.resolve(result.subject, result.claims)
        user_id = str(identity.id)
        await self.credentials.put(user_id, result.tokens)

        if previous_session_id:
            await self.sessions.revoke(previous_session_id)
        session_id = await self.sessions.create(user_id)

        LOGIN_ATTEMPTS.labels(outcome="success").inc()
        logger.info("Login complete user=%s", user_id)
        return LoginResult(
            session_id=session_id, user_id=user_id, return_to=pending.return_to
        )

    # ------------------------------------------------------------------
    # Signed-in requests
    # ------------------------------------------------------------------

    async def current_user(self, session_id: str) -> UserIdentity:
        user_id = await self.sessions.validate(session_id)
        identity = await self.identities.get(user_id)
        if identity is None:
            # Session outlived its user record
            await self.sessions.revoke(session_id)
            raise SessionNotFound("user no longer exists")
        return identity

    async def get_valid_access_token(self, session_id: str) -> str:
        """Provider access token for the session's user.

        If the user's credentials cannot be refreshed any more, the session
        is revoked and ReauthRequired propagates.
        """
        user_id = await self.sessions.validate(session_id)
        try:
            return await self.credentials.get_valid_access_token(user_id)
        except ReauthRequired:
            await self.sessions.revoke(session_id)
            logger.info("Session revoked, re-authentication required user=%s", user_id)
            raise

    async def fetch_userinfo(self, session_id: str) -> dict[str, Any]:
        access_token = await self.get_valid_access_token(session_id)
        return await self.exchange.fetch_userinfo(access_token)

    # ------------------------------------------------------------------
    # Logout and housekeeping
    # ------------------------------------------------------------------

    async def logout(self, session_id: str | None) -> FlowState:
        """Revoke the session. Safe to call with an unknown or empty id."""
        if not session_id:
            return FlowState.ANONYMOUS

        user_id: str | None = None
        if self._revoke_on_logout:
            try:
                user_id = await self.sessions.validate(session_id)
            except SessionError:
                user_id = None

        await self.sessions.revoke(session_id)

        if user_id is not None:
            tokens = await self.credentials.get(user_id)
            if tokens is not None:
                await self.exchange.revoke(
                    tokens.refresh_token or tokens.access_token,
                    token_type_hint=(
                        "refresh_token" if tokens.refresh_token else "access_token"
                    ),
                )
                await self.credentials.delete(user_id)
            logger.info("Provider grant revoked on logout user=%s", user_id)
        return FlowState.ANONYMOUS

    async def sweep(self) -> tuple[int, int]:
        """Purge expired pending logins and sessions."""
        return await self.states.sweep(), await self.sessions.sweep()

    async def close(self) -> None:
        await self.exchange.close()
