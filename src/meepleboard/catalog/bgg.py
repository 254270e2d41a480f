"""
BoardGameGeek XML API 2 client.

Query surface over /search, /thing and /hot. Every public method is
best-effort: fetch and parse failures are logged and degrade to None
or an empty list, so callers never see transport errors.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from typing import Any

from meepleboard.catalog.base import BaseCatalogClient
from meepleboard.catalog.contracts import CatalogEntry, GameSuggestion
from meepleboard.catalog.errors import CatalogError, CatalogParseError
from meepleboard.catalog.parsing import (
    best_match,
    has_message,
    parse_document,
    parse_hot_item,
    parse_suggestion,
    parse_thing,
    search_result_ids,
)
from meepleboard.config import BGGAPIConfig, get_settings

SEARCH_TYPES = "boardgame,boardgameexpansion"


class BGGClient(BaseCatalogClient):
    """
    Client for the BoardGameGeek XML API 2.

    Detail fetches for search candidates are strictly sequential with a
    fixed pause in between; BGG throttles aggressively and parallel
    requests only end in 429 responses.

    Example:
        >>> async with BGGClient() as bgg:
        ...     entry = await bgg.search_by_name("Catan")
        ...     if entry:
        ...         print(entry.external_id, entry.rank)
    """

    def __init__(
        self,
        *,
        config: BGGAPIConfig | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the BGG client.

        Args:
            config: BGG API configuration (uses settings if None)
            **kwargs: Arguments passed to BaseCatalogClient
        """
        self._config = config or get_settings().bgg
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        super().__init__(**kwargs)

    @property
    def source_name(self) -> str:
        """Return source identifier."""
        return "bgg_xmlapi2"

    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/xml",
            "User-Agent": self._config.user_agent,
        }
        if self._config.api_token is not None:
            headers["Authorization"] = f"Bearer {self._config.api_token.get_secret_value()}"
        return headers

    async def _get_document(self, endpoint: str, params: dict[str, Any]) -> ET.Element:
        body = await self._make_request(f"{self._config.base_url}/{endpoint}", params=params)
        return parse_document(body)

    async def _search_ids(self, query: str) -> list[int]:
        root = await self._get_document("search", {"query": query, "type": SEARCH_TYPES})
        return search_result_ids(root)

    async def _fetch_sequentially(self, external_ids: Iterable[int]) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        for i, external_id in enumerate(external_ids):
            if i > 0:
                await self._sleep(self._config.candidate_delay_seconds)
            entry = await self.fetch_by_id(external_id)
            if entry is not None:
                entries.append(entry)
        return entries

    async def search_many(self, name: str) -> list[CatalogEntry]:
        """
        Search by name and fetch full details for every hit.

        Args:
            name: Free-text game name

        Returns:
            list[CatalogEntry]: Detailed candidates, in search order
        """
        if not name or not name.strip():
            return []

        query = name.strip()
        try:
            ids = await self._search_ids(query)
        except CatalogError as e:
            self._logger.error("Search failed", query=query, error=str(e))
            return []

        cap = self._config.max_search_candidates
        if cap is not None and len(ids) > cap:
            self._logger.warning(
                "Truncating search candidates",
                query=query,
                found=len(ids),
                kept=cap,
            )
            ids = ids[:cap]

        self._logger.info("Fetching search candidates", query=query, candidates=len(ids))
        return await self._fetch_sequentially(ids)

    async def search_by_name(self, name: str) -> CatalogEntry | None:
        """
        Find the single best catalog match for a name.

        Returns:
            CatalogEntry | None: Exact (case-insensitive) match, else the
            closest by edit distance; None when the search has no hits
        """
        candidates = await self.search_many(name)
        match = best_match(candidates, name)

        if match is None:
            self._logger.info("No catalog match", query=name)
        else:
            self._logger.info(
                "Catalog match selected",
                query=name,
                external_id=match.external_id,
                name=match.name,
                candidates=len(candidates),
            )
        return match

    async def fetch_by_id(self, external_id: int) -> CatalogEntry | None:
        """
        Fetch full details for one BGG id.

        Returns:
            CatalogEntry | None: None if BGG reports the item as not yet
            available, the item is missing, or anything fails
        """
        if external_id <= 0:
            return None

        try:
            root = await self._get_document("thing", {"id": external_id, "stats": 1})

            if has_message(root):
                self._logger.warning("Item not yet available", external_id=external_id)
                return None

            item = root.find("item")
            if item is None:
                self._logger.info("Item not found", external_id=external_id)
                return None

            return parse_thing(item)

        except CatalogError as e:
            self._logger.error(
                "Fetch by id failed",
                external_id=external_id,
                error=str(e),
                status_code=e.status_code,
            )
            return None

    async def fetch_hot_list(self) -> list[CatalogEntry]:
        """Fetch the BGG 'hot' list; items without an id are discarded."""
        try:
            root = await self._get_document("hot", {"type": "boardgame"})
        except CatalogError as e:
            self._logger.error("Hot list fetch failed", error=str(e))
            return []

        entries = [e for e in map(parse_hot_item, root.iter("item")) if e is not None]
        self._logger.info("Hot list fetched", total=len(entries))
        return entries

    async def fetch_many_by_ids(self, external_ids: Iterable[int]) -> list[CatalogEntry]:
        """
        Fetch details for many ids with batched /thing requests.

        Items that fail to parse and batches that fail to fetch are
        dropped; everything else is returned.
        """
        ids = list(dict.fromkeys(i for i in external_ids if i > 0))
        if not ids:
            return []

        entries: list[CatalogEntry] = []
        batch_size = self._config.batch_size

        for batch_start in range(0, len(ids), batch_size):
            if batch_start > 0:
                await self._sleep(self._config.candidate_delay_seconds)

            batch = ids[batch_start : batch_start + batch_size]
            try:
                root = await self._get_document(
                    "thing",
                    {
                        "id": ",".join(str(i) for i in batch),
                        "stats": 1,
                        "type": SEARCH_TYPES,
                    },
                )
            except CatalogError as e:
                self._logger.error("Batch fetch failed", ids=batch, error=str(e))
                continue

            for item in root.iter("item"):
                try:
                    entries.append(parse_thing(item))
                except CatalogParseError as e:
                    self._logger.warning("Dropping unparsable item", id=item.get("id"), error=str(e))

        self._logger.info("Batch fetch complete", requested=len(ids), received=len(entries))
        return entries

    async def search_suggestions(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
    ) -> list[GameSuggestion]:
        """
        Paginated lightweight search for autocomplete.

        Args:
            query: Free-text search
            offset: Number of search hits to skip
            limit: Page size (at least 1)

        Returns:
            list[GameSuggestion]: Suggestions for the requested page
        """
        if not query or not query.strip():
            return []

        try:
            ids = await self._search_ids(query.strip())
            start = max(0, offset)
            page = ids[start : start + max(1, limit)]
            if not page:
                return []

            root = await self._get_document(
                "thing",
                {"id": ",".join(str(i) for i in page), "stats": 1},
            )
        except CatalogError as e:
            self._logger.error("Suggestion search failed", query=query, error=str(e))
            return []

        return [s for s in map(parse_suggestion, root.iter("item")) if s is not None]
