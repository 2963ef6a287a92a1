from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TokenSet:
    """Provider credentials for one user. Secrets are kept out of repr()."""

    access_token: str = field(repr=False)
    access_expires_at: int
    refresh_token: str | None = field(default=None, repr=False)
    scope: frozenset[str] = frozenset()
    obtained_at: int = 0

    def expires_within(self, margin_sec: int, now: int) -> bool:
        """True when the access token is expired or will be within margin."""
        return self.access_expires_at - now <= margin_sec

    @property
    def scope_str(self) -> str:
        return " ".join(sorted(self.scope))

    @staticmethod
    def parse_scope(raw: str | None) -> frozenset[str]:
        if not raw:
            return frozenset()
        return frozenset(raw.replace(",", " ").split())


@dataclass(frozen=True, slots=True)
class ExchangeResult:
    """Output of a successful code exchange."""

    tokens: TokenSet
    subject: str
    claims: dict[str, Any] = field(default_factory=dict, repr=False)
