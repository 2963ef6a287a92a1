"""PostgreSQL implementation of UserIdentityRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.tables import UserIdentityRow
from app.models.user_identity import UserIdentity


class PgUserIdentityRepo:
    """Satisfies the UserIdentityRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, user_id: UUID) -> UserIdentity | None:
        stmt = select(UserIdentityRow).where(UserIdentityRow.id == user_id)
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_identity(row)

    async def get_by_subject(self, provider: str, subject: str) -> UserIdentity | None:
        stmt = select(UserIdentityRow).where(
            UserIdentityRow.provider == provider,
            UserIdentityRow.subject == subject,
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_identity(row)

    async def add(self, identity: UserIdentity) -> None:
        row = UserIdentityRow(
            id=identity.id,
            provider=identity.provider,
            subject=identity.subject,
            email=identity.email,
            name=identity.name,
            picture=identity.picture,
            created_at=identity.created_at,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
        except IntegrityError:
            raise ValueError("identity already exists") from None

    async def update_profile(
        self,
        user_id: UUID,
        *,
        email: str | None,
        name: str | None,
        picture: str | None,
    ) -> UserIdentity | None:
        stmt = (
            update(UserIdentityRow)
            .where(UserIdentityRow.id == user_id)
            .values(email=email, name=name, picture=picture)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(user_id)


def _row_to_identity(row: UserIdentityRow) -> UserIdentity:
    return UserIdentity(
        id=row.id,
        provider=row.provider,
        subject=row.subject,
        email=row.email,
        name=row.name,
        picture=row.picture,
        created_at=row.created_at,
    )
