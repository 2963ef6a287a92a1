from __future__ import annotations

import base64
import hashlib
import secrets

# PKCE (RFC 7636) for the client side of the Authorization Code flow.
#
# begin_login() generates a verifier, keeps it with the pending login, and
# sends only the S256 challenge to the provider. The callback hands the
# verifier to the token endpoint, so a code intercepted on its way back to
# us is useless without it.

CHALLENGE_METHOD = "S256"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


# 32 random bytes -> 43 chars after base64url, the minimum RFC 7636 allows
def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(32))


def compute_code_challenge(code_verifier: str) -> str:
    if not 43 <= len(code_verifier) <= 128:
        raise ValueError("code_verifier must be 43-128 characters")
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())
