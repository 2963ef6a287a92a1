"""Outbound calls to the identity provider.

One shared httpx.AsyncClient talks to four endpoints:

  token       authorization_code and refresh_token grants (client_secret_post)
  userinfo    profile claims, and the subject when no ID token came back
  revocation  RFC 7009, best effort, only used on logout when enabled

Failures are sorted into the taxonomy in app.core.errors so callers can
react without looking at HTTP details:

  transport error / timeout         -> ExchangeNetworkError   (retryable)
  non-2xx, error or malformed body  -> ProviderRejectedError  (error code kept)
  refresh grant says invalid        -> RefreshInvalidError    (re-authenticate)

Nothing here ever logs a code, token or the client secret.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.clock import Clock, utc_now
from app.core.config import Settings
from app.core.errors import (
    ExchangeNetworkError,
    ProviderRejectedError,
    RefreshInvalidError,
)
from app.core.metrics import PROVIDER_REQUEST_DURATION
from app.core.secrets import SecretStore
from app.models.token_set import ExchangeResult, TokenSet

logger = logging.getLogger(__name__)

# Used when the token response omits expires_in.
DEFAULT_ACCESS_TTL_SEC = 3600


def _is_dead_refresh_token(exc: ProviderRejectedError) -> bool:
    if exc.error_code == "invalid_grant":
        return True
    return exc.error_code == "invalid_token" and exc.status_code in (400, 401)


class TokenResponse(BaseModel):
    """RFC 6749 §5.1 successful token response."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int | None = Field(default=None, ge=0)
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None


class TokenExchangeClient:
    def __init__(
        self,
        secrets: SecretStore,
        *,
        token_url: str,
        userinfo_url: str | None = None,
        revocation_url: str | None = None,
        scopes: tuple[str, ...] = (),
        timeout_sec: float = 10.0,
        clock: Clock = utc_now,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._secrets = secrets
        self._token_url = token_url
        self._userinfo_url = userinfo_url
        self._revocation_url = revocation_url
        self._requested_scope = frozenset(scopes)
        self._timeout = timeout_sec
        self._clock = clock
        self._http = http_client or httpx.AsyncClient(timeout=timeout_sec)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        secrets: SecretStore,
        *,
        clock: Clock = utc_now,
        http_client: httpx.AsyncClient | None = None,
    ) -> TokenExchangeClient:
        return cls(
            secrets,
            token_url=settings.token_url,
            userinfo_url=settings.userinfo_url,
            revocation_url=settings.revocation_url,
            scopes=settings.scopes,
            timeout_sec=settings.provider_timeout_sec,
            clock=clock,
            http_client=http_client,
        )

    @property
    def supports_userinfo(self) -> bool:
        return self._userinfo_url is not None

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def exchange_code(
        self, code: str, redirect_uri: str, *, code_verifier: str | None = None
    ) -> ExchangeResult:
        """Trade an authorization code for tokens and the user's subject."""
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier

        body = await self._post_token(form, operation="exchange_code")
        token_response = self._parse_token_response(body)
        tokens = self._to_token_set(token_response, fallback_scope=None)

        claims: dict[str, Any] = {}
        if token_response.id_token:
            claims = _read_id_token(token_response.id_token)
        subject = claims.get("sub")

        if not subject and self._userinfo_url:
            claims = {**claims, **await self.fetch_userinfo(tokens.access_token)}
            subject = claims.get("sub") or claims.get("id")

        if not subject:
            raise ProviderRejectedError(
                "provider did not identify the user", error_code="missing_subject"
            )
        return ExchangeResult(tokens=tokens, subject=str(subject), claims=claims)

    async def refresh(
        self, refresh_token: str, *, scope: frozenset[str] | None = None
    ) -> TokenSet:
        """Redeem a refresh token for a new TokenSet.

        Providers that do not rotate refresh tokens omit one from the
        response; the presented token then stays valid and is carried over.
        """
        form = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        try:
            body = await self._post_token(form, operation="refresh")
        except ProviderRejectedError as exc:
            if _is_dead_refresh_token(exc):
                raise RefreshInvalidError(error_code=exc.error_code) from exc
            raise

        token_response = self._parse_token_response(body)
        if token_response.refresh_token is None:
            token_response = token_response.model_copy(
                update={"refresh_token": refresh_token}
            )
        return self._to_token_set(token_response, fallback_scope=scope)

    # ------------------------------------------------------------------
    # Other endpoints
    # ------------------------------------------------------------------

    async def fetch_userinfo(self, access_token: str) -> dict[str, Any]:
        if self._userinfo_url is None:
            raise ProviderRejectedError(
                "userinfo endpoint not configured", error_code="unsupported"
            )
        with PROVIDER_REQUEST_DURATION.labels(operation="userinfo").time():
            try:
                resp = await self._http.get(
                    self._userinfo_url,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                    timeout=self._timeout,
                )
            except httpx.TransportError as exc:
                logger.warning("Userinfo request failed: %s", type(exc).__name__)
                raise ExchangeNetworkError("identity provider unreachable") from exc

        if not resp.is_success:
            raise _rejected(resp, "userinfo request rejected")
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise ProviderRejectedError(
                "malformed userinfo response",
                error_code="invalid_response",
                status_code=resp.status_code,
            )
        return data

    async def revoke(
        self, token: str, *, token_type_hint: str = "refresh_token"
    ) -> bool:
        """Ask the provider to revoke a token. Never raises; False on failure."""
        if self._revocation_url is None:
            return False
        form = {
            "token": token,
            "token_type_hint": token_type_hint,
            "client_id": self._secrets.client_id,
            "client_secret": self._secrets.client_secret,
        }
        with PROVIDER_REQUEST_DURATION.labels(operation="revoke").time():
            try:
                resp = await self._http.post(
                    self._revocation_url, data=form, timeout=self._timeout
                )
            except httpx.TransportError as exc:
                logger.warning("Token revocation failed: %s", type(exc).__name__)
                return False
        if not resp.is_success:
            logger.warning("Token revocation rejected status=%s", resp.status_code)
            return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _post_token(self, form: dict[str, str], *, operation: str) -> Any:
        payload = {
            **form,
            "client_id": self._secrets.client_id,
            "client_secret": self._secrets.client_secret,
        }
        with PROVIDER_REQUEST_DURATION.labels(operation=operation).time():
            try:
                resp = await self._http.post(
                    self._token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                )
            except httpx.TransportError as exc:
                # Class name only: some transports echo the request body
                logger.warning(
                    "Token endpoint %s failed: %s", operation, type(exc).__name__
                )
                raise ExchangeNetworkError("identity provider unreachable") from exc

        if not resp.is_success:
            error = _rejected(resp, f"token endpoint rejected {operation}")
            logger.info(
                "Token endpoint rejected %s status=%s error=%s",
                operation,
                resp.status_code,
                error.error_code,
            )
            raise error
        try:
            body = resp.json()
        except ValueError:
            raise ProviderRejectedError(
                "malformed token response",
                error_code="invalid_response",
                status_code=resp.status_code,
            ) from None
        # Some providers report grant errors with a 200 status
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            error = _error_from_body(
                body, f"token endpoint rejected {operation}", resp.status_code
            )
            logger.info(
                "Token endpoint rejected %s status=%s error=%s",
                operation,
                resp.status_code,
                error.error_code,
            )
            raise error
        return body

    @staticmethod
    def _parse_token_response(body: Any) -> TokenResponse:
        try:
            return TokenResponse.model_validate(body)
        except ValidationError:
            raise ProviderRejectedError(
                "malformed token response", error_code="invalid_response"
            ) from None

    def _to_token_set(
        self, token_response: TokenResponse, *, fallback_scope: frozenset[str] | None
    ) -> TokenSet:
        now = self._clock()
        expires_in = token_response.expires_in
        if expires_in is None:
            expires_in = DEFAULT_ACCESS_TTL_SEC
        # An omitted scope means "as requested" (RFC 6749 §5.1)
        if token_response.scope is not None:
            scope = TokenSet.parse_scope(token_response.scope)
        elif fallback_scope is not None:
            scope = fallback_scope
        else:
            scope = self._requested_scope
        return TokenSet(
            access_token=token_response.access_token,
            access_expires_at=now + expires_in,
            refresh_token=token_response.refresh_token,
            scope=scope,
            obtained_at=now,
        )


def _read_id_token(id_token: str) -> dict[str, Any]:
    # Signature is not verified: the token came straight from the token
    # endpoint over TLS, and only its claims are read.
    try:
        return jwt.decode(id_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        raise ProviderRejectedError(
            "malformed id_token", error_code="invalid_id_token"
        ) from None


def _rejected(resp: httpx.Response, message: str) -> ProviderRejectedError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    return _error_from_body(body, message, resp.status_code)


def _error_from_body(
    body: Any, message: str, status_code: int
) -> ProviderRejectedError:
    error_code: str | None = None
    description: str | None = None
    if isinstance(body, dict):
        if isinstance(body.get("error"), str):
            error_code = body["error"]
        if isinstance(body.get("error_description"), str):
            description = body["error_description"]
    return ProviderRejectedError(
        message,
        error_code=error_code,
        description=description,
        status_code=status_code,
    )
