from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Local user, correlated to one provider subject."""

    id: UUID
    provider: str
    subject: str
    email: str | None
    name: str | None
    picture: str | None
    created_at: int

    @staticmethod
    def new(
        *,
        provider: str,
        subject: str,
        now: int,
        email: str | None = None,
        name: str | None = None,
        picture: str | None = None,
    ) -> UserIdentity:
        return UserIdentity(
            id=uuid4(),
            provider=provider,
            subject=subject,
            email=email,
            name=name,
            picture=picture,
            created_at=now,
        )
