from __future__ import annotations

from dataclasses import replace
from typing import Protocol, runtime_checkable
from uuid import UUID

from app.models.user_identity import UserIdentity


@runtime_checkable
class UserIdentityRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> UserIdentity | None: ...
    async def get_by_subject(
        self, provider: str, subject: str
    ) -> UserIdentity | None: ...
    async def add(self, identity: UserIdentity) -> None: ...

    async def update_profile(
        self,
        user_id: UUID,
        *,
        email: str | None,
        name: str | None,
        picture: str | None,
    ) -> UserIdentity | None:
        """Overwrite the cached profile claims. None if the user is unknown."""
        ...


class InMemoryUserIdentityRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, UserIdentity] = {}
        self._by_subject: dict[tuple[str, str], UserIdentity] = {}

    async def get_by_id(self, user_id: UUID) -> UserIdentity | None:
        return self._by_id.get(user_id)

    async def get_by_subject(self, provider: str, subject: str) -> UserIdentity | None:
        return self._by_subject.get((provider, subject))

    async def add(self, identity: UserIdentity) -> None:
        key = (identity.provider, identity.subject)
        if key in self._by_subject:
            raise ValueError("identity already exists")
        self._by_id[identity.id] = identity
        self._by_subject[key] = identity

    async def update_profile(
        self,
        user_id: UUID,
        *,
        email: str | None,
        name: str | None,
        picture: str | None,
    ) -> UserIdentity | None:
        current = self._by_id.get(user_id)
        if current is None:
            return None
        updated = replace(current, email=email, name=name, picture=picture)
        self._by_id[user_id] = updated
        self._by_subject[(updated.provider, updated.subject)] = updated
        return updated
