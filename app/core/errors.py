"""Error taxonomy for the sign-in flow.

Services raise these; the HTTP layer (app/api) decides status codes and
pages.  The split matters to callers:

  InvalidState            forged/expired/replayed callback, restart login
  ExchangeNetworkError    provider unreachable, the user may simply retry
  ProviderRejectedError   provider said no, surfaced as login failure
  RefreshInvalidError     refresh token dead, re-authentication required
  ReauthRequired          same meaning, raised by the credential store
  SessionNotFound/Expired treated as unauthenticated
"""

from __future__ import annotations


class AuthFlowError(Exception):
    """Base class for every error raised by the sign-in flow."""

    retryable: bool = False


class InvalidState(AuthFlowError):
    def __init__(self, reason: str = "invalid state") -> None:
        super().__init__(reason)
        self.reason = reason


# ---------------------------------------------------------------------------
# Token endpoint
# ---------------------------------------------------------------------------


class ExchangeError(AuthFlowError):
    """A call to the provider's token endpoint failed."""


class ExchangeNetworkError(ExchangeError):
    """Transport failure or timeout. The only retryable class."""

    retryable = True


class ProviderRejectedError(ExchangeError):
    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        description: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.description = description
        self.status_code = status_code


class RefreshInvalidError(ExchangeError):
    """The provider reported the refresh token as invalid or revoked."""

    def __init__(
        self, message: str = "refresh token rejected", *, error_code: str | None = None
    ) -> None:
        super().__init__(message)
        self.error_code = error_code


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class CredentialError(AuthFlowError):
    pass


class ReauthRequired(CredentialError):
    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"re-authentication required for user={user_id}: {reason}")
        self.user_id = user_id
        self.reason = reason


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionError(AuthFlowError):
    pass


class SessionNotFound(SessionError):
    pass


class SessionExpired(SessionError):
    pass
