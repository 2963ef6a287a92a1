from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PendingLogin:
    """A login attempt waiting for its provider callback.

    Keyed by the SHA-256 of the state token; the raw token only ever
    exists in the provider redirect URL and the callback query string.
    """

    state_hash: str
    created_at: int
    expires_at: int
    code_verifier: str | None = field(default=None, repr=False)
    return_to: str = "/"

    @staticmethod
    def new(
        *,
        state_hash: str,
        now: int,
        ttl_sec: int,
        code_verifier: str | None = None,
        return_to: str = "/",
    ) -> PendingLogin:
        return PendingLogin(
            state_hash=state_hash,
            created_at=now,
            expires_at=now + ttl_sec,
            code_verifier=code_verifier,
            return_to=return_to,
        )

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at
