from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.models.token_set import TokenSet


@runtime_checkable
class TokenSetRepo(Protocol):
    async def get(self, user_id: str) -> TokenSet | None: ...

    async def put(self, user_id: str, tokens: TokenSet) -> None:
        """Replace whatever is stored for user_id (last writer wins)."""
        ...

    async def delete(self, user_id: str) -> None: ...


class InMemoryTokenSetRepo:
    def __init__(self) -> None:
        self._by_user_id: dict[str, TokenSet] = {}

    async def get(self, user_id: str) -> TokenSet | None:
        return self._by_user_id.get(user_id)

    async def put(self, user_id: str, tokens: TokenSet) -> None:
        self._by_user_id[user_id] = tokens

    async def delete(self, user_id: str) -> None:
        self._by_user_id.pop(user_id, None)
