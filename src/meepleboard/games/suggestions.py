"""
Game name suggestions for autocomplete.

Local games come first; the catalog only tops the page up when the
store alone cannot fill it.
"""

from uuid import UUID

from meepleboard.catalog.base import CatalogSource
from meepleboard.catalog.contracts import GameSuggestion
from meepleboard.games.models import GameNotFoundError, LocalGame
from meepleboard.games.store import GameKind, GameStore
from meepleboard.logger import get_logger

EXPANSIONS_PER_BASE = 10


def _from_local(game: LocalGame) -> GameSuggestion:
    return GameSuggestion(
        id=game.id,
        external_id=game.external_id,  # type: ignore[arg-type]
        name=game.name,
        year_published=game.year_published,
        image_url=game.image_url or None,
        is_expansion=game.is_expansion,
    )


class SuggestionService:
    """Merges local matches with catalog search results."""

    def __init__(self, store: GameStore, catalog: CatalogSource) -> None:
        self._store = store
        self._catalog = catalog
        self._logger = get_logger(__name__, component="suggestions")

    async def suggest(self, query: str, offset: int = 0, limit: int = 10) -> list[GameSuggestion]:
        return await self._suggest(query, offset, limit, GameKind.ANY)

    async def suggest_base_games(
        self, query: str, offset: int = 0, limit: int = 10
    ) -> list[GameSuggestion]:
        return await self._suggest(query, offset, limit, GameKind.BASE)

    async def suggest_expansions(
        self, query: str, offset: int = 0, limit: int = 10
    ) -> list[GameSuggestion]:
        return await self._suggest(query, offset, limit, GameKind.EXPANSION)

    async def suggest_expansions_for(self, base_game_id: UUID) -> list[GameSuggestion]:
        """
        Known and catalog expansions of a base game.

        Raises:
            GameNotFoundError: If the base game does not exist locally
        """
        base = await self._store.find_by_id(base_game_id)
        if base is None:
            raise GameNotFoundError(f"Base game {base_game_id} not found")

        local = await self._store.find_expansions_of(base_game_id)
        suggestions = [_from_local(g) for g in local if g.external_id is not None]

        if base.external_id is not None and len(suggestions) < EXPANSIONS_PER_BASE:
            remote = await self._catalog.search_suggestions(base.name, 0, EXPANSIONS_PER_BASE)
            suggestions.extend(
                self._missing(
                    remote,
                    suggestions,
                    EXPANSIONS_PER_BASE - len(suggestions),
                    GameKind.EXPANSION,
                )
            )

        return suggestions

    async def _suggest(
        self,
        query: str,
        offset: int,
        limit: int,
        kind: GameKind,
    ) -> list[GameSuggestion]:
        if not query or not query.strip():
            return []

        local = await self._store.search_by_name(query.strip(), offset, limit, kind)
        suggestions = [_from_local(g) for g in local if g.external_id is not None]

        if len(suggestions) < limit:
            remaining = limit - len(suggestions)
            remote = await self._catalog.search_suggestions(
                query.strip(),
                offset + len(suggestions),
                remaining,
            )
            suggestions.extend(self._missing(remote, suggestions, remaining, kind))

        self._logger.debug("Suggestions built", query=query, kind=kind.value, total=len(suggestions))
        return suggestions

    @staticmethod
    def _missing(
        remote: list[GameSuggestion],
        present: list[GameSuggestion],
        limit: int,
        kind: GameKind,
    ) -> list[GameSuggestion]:
        seen = {s.external_id for s in present}
        extras: list[GameSuggestion] = []
        for suggestion in remote:
            if len(extras) >= limit:
                break
            if suggestion.external_id in seen:
                continue
            if kind is GameKind.BASE and suggestion.is_expansion:
                continue
            if kind is GameKind.EXPANSION and not suggestion.is_expansion:
                continue
            seen.add(suggestion.external_id)
            extras.append(suggestion)
        return extras
