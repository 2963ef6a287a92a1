"""PostgreSQL implementation of PendingLoginRepo."""

from __future__ import annotations

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.tables import PendingLoginRow
from app.models.pending_login import PendingLogin


class PgPendingLoginRepo:
    """Satisfies the PendingLoginRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, record: PendingLogin) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(
                PendingLoginRow(
                    state_hash=record.state_hash,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                    code_verifier=record.code_verifier,
                    return_to=record.return_to,
                )
            )

    async def consume(self, state_hash: str) -> PendingLogin | None:
        """Single conditional delete: at most one caller gets the row back."""
        stmt = (
            delete(PendingLoginRow)
            .where(PendingLoginRow.state_hash == state_hash)
            .returning(
                PendingLoginRow.state_hash,
                PendingLoginRow.created_at,
                PendingLoginRow.expires_at,
                PendingLoginRow.code_verifier,
                PendingLoginRow.return_to,
            )
        )
        async with self._session_factory() as session, session.begin():
            row = (await session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return PendingLogin(
            state_hash=row.state_hash,
            created_at=row.created_at,
            expires_at=row.expires_at,
            code_verifier=row.code_verifier,
            return_to=row.return_to,
        )

    async def purge_expired(self, now: int) -> int:
        stmt = delete(PendingLoginRow).where(PendingLoginRow.expires_at <= now)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return result.rowcount or 0
