"""Process-wide secrets: OAuth client credentials and the session key.

Built once from Settings at startup and never mutated afterwards, so any
number of concurrent requests can read it without coordination.

Two derived capabilities live here so raw key material never leaves this
module:

  - session_key():  HMAC-SHA256 of a raw session id.  Stores are keyed by
    this digest, so a dump of the session table yields no usable cookies.
  - TokenCipher:    Fernet encryption for provider tokens at rest (used by
    the SQL credential repo).  The Fernet key is derived from the signing
    key with a domain-separation prefix.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass, field

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import Settings

_CIPHER_CONTEXT = b"token-encryption:v1:"


@dataclass(frozen=True, slots=True)
class SecretStore:
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    signing_key: str = field(repr=False)

    @staticmethod
    def from_settings(settings: Settings) -> SecretStore:
        return SecretStore(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            signing_key=settings.session_signing_key,
        )

    def session_key(self, session_id: str) -> str:
        """Storage key for a raw session id."""
        return hmac.new(
            self.signing_key.encode(), session_id.encode(), hashlib.sha256
        ).hexdigest()

    def cipher(self) -> TokenCipher:
        return TokenCipher.from_signing_key(self.signing_key)


class TokenCipher:
    """Symmetric encryption for tokens persisted outside process memory."""

    def __init__(self, fernet: Fernet) -> None:
        self._fernet = fernet

    @classmethod
    def from_signing_key(cls, signing_key: str) -> TokenCipher:
        digest = hashlib.sha256(_CIPHER_CONTEXT + signing_key.encode()).digest()
        return cls(Fernet(base64.urlsafe_b64encode(digest)))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Raises ValueError if the ciphertext was not produced by this key."""
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            raise ValueError("token ciphertext failed authentication") from None

    def __repr__(self) -> str:
        return "TokenCipher(<redacted>)"
