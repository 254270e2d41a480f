"""
Catalog store interface and an in-memory implementation.

The reconciler only talks to `GameStore`. Writes are staged and become
visible to other units of work on `commit()`; `rollback()` discards
everything staged since the last commit.
"""

import copy
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from meepleboard.games.models import LocalGame
from meepleboard.logger import get_logger


class GameKind(str, Enum):
    """Filter for name searches."""

    ANY = "any"
    BASE = "base"
    EXPANSION = "expansion"

    def matches(self, game: LocalGame) -> bool:
        if self is GameKind.BASE:
            return not game.is_expansion
        if self is GameKind.EXPANSION:
            return game.is_expansion
        return True


class StoreIntegrityError(Exception):
    """Raised when a write would break a store constraint."""


@runtime_checkable
class GameStore(Protocol):
    """Persistence operations the catalog services depend on."""

    async def find_by_id(self, game_id: UUID) -> LocalGame | None: ...

    async def find_by_external_id(self, external_id: int) -> LocalGame | None: ...

    async def find_by_name(self, name: str) -> LocalGame | None: ...

    async def find_orphan_expansions_of(self, external_id: int) -> list[LocalGame]: ...

    async def find_expansions_of(self, base_game_id: UUID) -> list[LocalGame]: ...

    async def search_by_name(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
        kind: GameKind = GameKind.ANY,
    ) -> list[LocalGame]: ...

    async def list_with_external_ids(self) -> list[LocalGame]: ...

    async def exists_by_external_id(self, external_id: int) -> bool: ...

    async def create(self, game: LocalGame) -> None: ...

    async def update(self, game: LocalGame) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class InMemoryGameStore:
    """
    Dictionary-backed GameStore.

    Hands out copies, so callers mutating an entity must `update()` it
    for the change to stick. Used by tests and local experiments.
    """

    def __init__(self, games: list[LocalGame] | None = None) -> None:
        self._committed: dict[UUID, LocalGame] = {}
        self._pending: dict[UUID, LocalGame] = {}
        self.commit_count = 0
        self._logger = get_logger(__name__, component="memory_store")

        for game in games or []:
            self._committed[game.id] = copy.deepcopy(game)

    def _view(self) -> dict[UUID, LocalGame]:
        return {**self._committed, **self._pending}

    def _games(self) -> list[LocalGame]:
        return list(self._view().values())

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending)

    async def find_by_id(self, game_id: UUID) -> LocalGame | None:
        game = self._view().get(game_id)
        return copy.deepcopy(game) if game else None

    async def find_by_external_id(self, external_id: int) -> LocalGame | None:
        for game in self._games():
            if game.external_id == external_id:
                return copy.deepcopy(game)
        return None

    async def find_by_name(self, name: str) -> LocalGame | None:
        wanted = name.strip().lower()
        for game in self._games():
            if game.name.lower() == wanted:
                return copy.deepcopy(game)
        return None

    async def find_orphan_expansions_of(self, external_id: int) -> list[LocalGame]:
        return [
            copy.deepcopy(g)
            for g in self._games()
            if g.base_game_id is None and g.base_game_external_id == external_id
        ]

    async def find_expansions_of(self, base_game_id: UUID) -> list[LocalGame]:
        expansions = [g for g in self._games() if g.base_game_id == base_game_id]
        return [copy.deepcopy(g) for g in sorted(expansions, key=lambda g: g.name)]

    async def search_by_name(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
        kind: GameKind = GameKind.ANY,
    ) -> list[LocalGame]:
        needle = query.strip().lower()
        hits = sorted(
            (g for g in self._games() if needle in g.name.lower() and kind.matches(g)),
            key=lambda g: g.name,
        )
        return [copy.deepcopy(g) for g in hits[offset : offset + limit]]

    async def list_with_external_ids(self) -> list[LocalGame]:
        return [copy.deepcopy(g) for g in self._games() if g.external_id is not None]

    async def exists_by_external_id(self, external_id: int) -> bool:
        return any(g.external_id == external_id for g in self._games())

    async def create(self, game: LocalGame) -> None:
        if game.id in self._view():
            raise StoreIntegrityError(f"Game {game.id} already exists")
        if game.external_id is not None and await self.exists_by_external_id(game.external_id):
            raise StoreIntegrityError(f"External id {game.external_id} already exists")
        self._pending[game.id] = copy.deepcopy(game)

    async def update(self, game: LocalGame) -> None:
        if game.id not in self._view():
            raise StoreIntegrityError(f"Game {game.id} does not exist")
        if game.external_id is not None:
            owner = await self.find_by_external_id(game.external_id)
            if owner is not None and owner.id != game.id:
                raise StoreIntegrityError(f"External id {game.external_id} already exists")
        self._pending[game.id] = copy.deepcopy(game)

    async def commit(self) -> None:
        self._committed.update(self._pending)
        written = len(self._pending)
        self._pending.clear()
        self.commit_count += 1
        self._logger.debug("Committed", games_written=written)

    async def rollback(self) -> None:
        self._pending.clear()
