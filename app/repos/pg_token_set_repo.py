"""PostgreSQL implementation of TokenSetRepo.

Access and refresh tokens are encrypted before they reach the database;
a leaked backup yields ciphertext only.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.secrets import TokenCipher
from app.db.tables import TokenSetRow
from app.models.token_set import TokenSet

logger = logging.getLogger(__name__)


class PgTokenSetRepo:
    """Satisfies the TokenSetRepo Protocol using PostgreSQL."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: TokenCipher,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher

    async def get(self, user_id: str) -> TokenSet | None:
        stmt = select(TokenSetRow).where(TokenSetRow.user_id == user_id)
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        try:
            return self._row_to_token_set(row)
        except ValueError:
            # Signing key rotated: stored tokens are unreadable, so the user
            # has to sign in again. Same outcome as "no tokens".
            logger.warning("Undecryptable token set for user=%s", user_id)
            return None

    async def put(self, user_id: str, tokens: TokenSet) -> None:
        values = {
            "user_id": user_id,
            "access_token": self._cipher.encrypt(tokens.access_token),
            "access_expires_at": tokens.access_expires_at,
            "refresh_token": (
                self._cipher.encrypt(tokens.refresh_token)
                if tokens.refresh_token
                else None
            ),
            "scope": tokens.scope_str,
            "obtained_at": tokens.obtained_at,
        }
        # Upsert: one statement, so concurrent writers for the same user
        # cannot interleave into a half-old/half-new row.
        stmt = insert(TokenSetRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TokenSetRow.user_id],
            set_={k: v for k, v in values.items() if k != "user_id"},
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def delete(self, user_id: str) -> None:
        stmt = delete(TokenSetRow).where(TokenSetRow.user_id == user_id)
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    def _row_to_token_set(self, row: TokenSetRow) -> TokenSet:
        return TokenSet(
            access_token=self._cipher.decrypt(row.access_token),
            access_expires_at=row.access_expires_at,
            refresh_token=(
                self._cipher.decrypt(row.refresh_token) if row.refresh_token else None
            ),
            scope=TokenSet.parse_scope(row.scope),
            obtained_at=row.obtained_at,
        )
