from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Session:
    # HMAC of the browser's session id, never the id itself
    session_hash: str
    user_id: str
    created_at: int
    last_seen_at: int
    expires_at: int

    def is_expired(self, now: int, max_ttl_sec: int) -> bool:
        return now >= self.expires_at or now >= self.created_at + max_ttl_sec
