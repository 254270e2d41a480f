"""
Catalog reconciler.

Turns "get or import game X" into a consistent local record: dedups on
the external id, imports and links base games of expansions, and
re-links expansions that were imported before their base game.
"""

from dataclasses import dataclass, field

from meepleboard.catalog.base import CatalogSource
from meepleboard.catalog.contracts import CatalogEntry
from meepleboard.games.models import GameValidationError, LocalGame
from meepleboard.games.store import GameStore
from meepleboard.logger import get_logger


@dataclass
class _ImportContext:
    """State shared by one import flow (one unit of work)."""

    visited: set[int] = field(default_factory=set)
    created: list[LocalGame] = field(default_factory=list)
    relinked: int = 0

    @property
    def has_writes(self) -> bool:
        return bool(self.created) or self.relinked > 0


def _require_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise GameValidationError("Game name cannot be empty")
    return name.strip()


def _require_external_id(external_id: int) -> int:
    if external_id <= 0:
        raise GameValidationError("External id must be positive")
    return external_id


class CatalogReconciler:
    """
    Reconciles the local game store with the external catalog.

    "Not found" is always a None result. Invalid input raises
    GameValidationError; store failures propagate after the pending
    unit of work is rolled back.
    """

    def __init__(self, store: GameStore, catalog: CatalogSource) -> None:
        self._store = store
        self._catalog = catalog
        self._logger = get_logger(__name__, component="reconciler")

    async def get_by_name(self, name: str) -> LocalGame | None:
        """Local-only lookup by case-insensitive, trimmed name."""
        trimmed = _require_name(name)
        self._logger.info("Looking up game by name", name=trimmed)
        return await self._store.find_by_name(trimmed)

    async def resolve_or_import(self, name: str) -> LocalGame | None:
        """
        Return the local game for a name, importing it from the catalog on a miss.

        Args:
            name: Display name as typed by the user

        Returns:
            LocalGame | None: Existing or newly imported game; None if the
            catalog has no match either

        Raises:
            GameValidationError: If the name is blank
        """
        trimmed = _require_name(name)

        local = await self._store.find_by_name(trimmed)
        if local is not None:
            return local

        entry = await self._catalog.search_by_name(trimmed)
        if entry is None:
            self._logger.info("No catalog match for name", name=trimmed)
            return None

        return await self._import(entry)

    async def import_by_external_id(self, external_id: int) -> LocalGame | None:
        """
        Import a game by catalog id; returns the existing game if already imported.

        Raises:
            GameValidationError: If the id is not positive
        """
        _require_external_id(external_id)

        existing = await self._store.find_by_external_id(external_id)
        if existing is not None:
            self._logger.info(
                "Game already imported",
                external_id=external_id,
                game_id=str(existing.id),
            )
            return existing

        entry = await self._catalog.fetch_by_id(external_id)
        if entry is None:
            self._logger.warning("No catalog entry for id", external_id=external_id)
            return None

        return await self._import(entry)

    async def import_entry(self, entry: CatalogEntry) -> LocalGame:
        """Import an already fetched catalog entry (idempotent on its external id)."""
        return await self._import(entry)

    async def refresh_from_catalog(self, game: LocalGame) -> bool:
        """
        Overwrite catalog-derived fields of a local game with fresh catalog data.

        Returns:
            bool: False, without changing anything, if the game has no
            external id, the catalog fetch fails, or the game is unknown
        """
        if game.external_id is None:
            self._logger.warning("Game has no external id, cannot refresh", game_id=str(game.id))
            return False

        entry = await self._catalog.fetch_by_id(game.external_id)
        if entry is None:
            self._logger.warning(
                "Catalog fetch failed, not refreshing",
                game_id=str(game.id),
                external_id=game.external_id,
            )
            return False

        existing = await self._store.find_by_id(game.id)
        if existing is None:
            self._logger.warning("Local game not found", game_id=str(game.id))
            return False

        self.apply_catalog_entry(existing, entry)
        try:
            await self._store.update(existing)
            await self._store.commit()
        except Exception:
            await self._store.rollback()
            raise

        self._logger.info("Game refreshed from catalog", game_id=str(existing.id), name=existing.name)
        return True

    @staticmethod
    def apply_catalog_entry(game: LocalGame, entry: CatalogEntry) -> LocalGame:
        """Copy catalog-owned fields from an entry onto a game."""
        game.update_details(
            entry.name,
            entry.description,
            entry.image_url,
            entry.supports_solo_mode,
        )
        game.set_rank(entry.rank)
        game.set_average_rating(entry.average_rating)
        game.set_year_published(entry.year_published)
        return game

    async def _import(self, entry: CatalogEntry) -> LocalGame:
        context = _ImportContext()
        try:
            game = await self._import_entry(entry, context)
            if context.has_writes:
                await self._store.commit()
        except Exception:
            await self._store.rollback()
            raise

        if context.created:
            self._logger.info(
                "Import committed",
                external_id=entry.external_id,
                game_id=str(game.id),
                created=len(context.created),
                relinked=context.relinked,
            )
        return game

    async def _import_entry(self, entry: CatalogEntry, context: _ImportContext) -> LocalGame:
        # External id is the dedup key; names are only a lookup convenience
        existing = await self._store.find_by_external_id(entry.external_id)
        if existing is not None:
            self._logger.info(
                "Catalog match already imported",
                external_id=entry.external_id,
                game_id=str(existing.id),
                name=existing.name,
            )
            return existing

        context.visited.add(entry.external_id)
        game = self._game_from_entry(entry)

        self._logger.info(
            "Importing catalog entry",
            external_id=entry.external_id,
            name=entry.name,
            is_expansion=entry.is_expansion,
            base_external_id=entry.base_external_id,
        )

        if entry.is_expansion and entry.base_external_id is not None:
            if entry.base_external_id == entry.external_id:
                self._logger.warning("Entry lists itself as base game", external_id=entry.external_id)
            else:
                base = await self._resolve_base(entry.base_external_id, context)
                if base is not None:
                    game.set_base_game(base)
                else:
                    game.set_base_game_external_id(entry.base_external_id)
                    self._logger.warning(
                        "Base game unresolved, deferring link",
                        name=entry.name,
                        base_external_id=entry.base_external_id,
                    )

        await self._store.create(game)
        context.created.append(game)

        if not entry.is_expansion:
            await self._relink_expansions(game, context)

        return game

    async def _resolve_base(self, base_external_id: int, context: _ImportContext) -> LocalGame | None:
        local = await self._store.find_by_external_id(base_external_id)
        if local is not None:
            return local

        if base_external_id in context.visited:
            self._logger.info("Base game already in this import chain", external_id=base_external_id)
            return None

        base_entry = await self._catalog.fetch_by_id(base_external_id)
        if base_entry is None:
            return None

        return await self._import_entry(base_entry, context)

    async def _relink_expansions(self, base: LocalGame, context: _ImportContext) -> None:
        if base.external_id is None:
            return

        orphans = await self._store.find_orphan_expansions_of(base.external_id)
        for expansion in orphans:
            if expansion.id == base.id or expansion.base_game_id == base.id:
                continue
            expansion.set_base_game(base)
            await self._store.update(expansion)
            context.relinked += 1
            self._logger.info(
                "Linked orphaned expansion",
                expansion=expansion.name,
                base=base.name,
            )

    @staticmethod
    def _game_from_entry(entry: CatalogEntry) -> LocalGame:
        return LocalGame(
            name=entry.name,
            description=entry.description,
            image_url=entry.image_url,
            supports_solo_mode=entry.supports_solo_mode,
            external_id=entry.external_id,
            rank=entry.rank,
            average_rating=entry.average_rating,
            year_published=entry.year_published,
        )
