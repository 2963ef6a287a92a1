from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from app.core.clock import Clock, utc_now
from app.models.user_identity import UserIdentity
from app.repos.user_identity_repo import UserIdentityRepo

logger = logging.getLogger(__name__)


def _claim(claims: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = claims.get(name)
        if isinstance(value, str) and value:
            return value
    return None


class IdentityResolver:
    """Maps a provider subject to the local user it belongs to."""

    def __init__(
        self, repo: UserIdentityRepo, *, provider: str, clock: Clock = utc_now
    ) -> None:
        self._repo = repo
        self._provider = provider
        self._clock = clock

    async def get(self, user_id: str) -> UserIdentity | None:
        try:
            key = UUID(user_id)
        except ValueError:
            return None
        return await self._repo.get_by_id(key)

    async def resolve(self, subject: str, claims: dict[str, Any]) -> UserIdentity:
        """Find or create the user for subject, refreshing cached profile fields."""
        email = _claim(claims, "email")
        name = _claim(claims, "name", "preferred_username", "login")
        picture = _claim(claims, "picture", "avatar_url")

        existing = await self._repo.get_by_subject(self._provider, subject)
        if existing is None:
            identity = UserIdentity.new(
                provider=self._provider,
                subject=subject,
                now=self._clock(),
                email=email,
                name=name,
                picture=picture,
            )
            try:
                await self._repo.add(identity)
            except ValueError:
                # Lost a first-login race for the same subject
                existing = await self._repo.get_by_subject(self._provider, subject)
                if existing is None:
                    raise
            else:
                logger.info("New user=%s provider=%s", identity.id, self._provider)
                return identity

        # Claims the provider left out this time keep their cached value
        email = email or existing.email
        name = name or existing.name
        picture = picture or existing.picture
        if (existing.email, existing.name, existing.picture) == (email, name, picture):
            return existing
        updated = await self._repo.update_profile(
            existing.id, email=email, name=name, picture=picture
        )
        return updated or existing
