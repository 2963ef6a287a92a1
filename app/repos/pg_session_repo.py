"""PostgreSQL implementation of SessionRepo."""

from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.tables import SessionRow
from app.models.session import Session


class PgSessionRepo:
    """Satisfies the SessionRepo Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, record: Session) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(
                SessionRow(
                    session_hash=record.session_hash,
                    user_id=record.user_id,
                    created_at=record.created_at,
                    last_seen_at=record.last_seen_at,
                    expires_at=record.expires_at,
                )
            )

    async def get(self, session_hash: str) -> Session | None:
        stmt = select(SessionRow).where(SessionRow.session_hash == session_hash)
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_session(row)

    async def touch(
        self, session_hash: str, *, last_seen_at: int, expires_at: int
    ) -> None:
        stmt = (
            update(SessionRow)
            .where(SessionRow.session_hash == session_hash)
            .values(last_seen_at=last_seen_at, expires_at=expires_at)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def delete(self, session_hash: str) -> bool:
        stmt = delete(SessionRow).where(SessionRow.session_hash == session_hash)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return bool(result.rowcount)

    async def delete_for_user(self, user_id: str, *, keep: str | None = None) -> int:
        stmt = delete(SessionRow).where(SessionRow.user_id == user_id)
        if keep is not None:
            stmt = stmt.where(SessionRow.session_hash != keep)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return result.rowcount or 0

    async def purge_expired(self, now: int) -> int:
        stmt = delete(SessionRow).where(SessionRow.expires_at <= now)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return result.rowcount or 0


def _row_to_session(row: SessionRow) -> Session:
    return Session(
        session_hash=row.session_hash,
        user_id=row.user_id,
        created_at=row.created_at,
        last_seen_at=row.last_seen_at,
        expires_at=row.expires_at,
    )
