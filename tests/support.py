"""Test helpers: XML fixture loaders and a scripted catalog source."""

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

from meepleboard.catalog.contracts import CatalogEntry, GameSuggestion

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_xml(name: str) -> str:
    """Load an XML fixture file as text."""
    with (FIXTURES_DIR / name).open(encoding="utf-8") as f:
        return f.read()


def thing_document(*external_ids: int) -> str:
    """Combine single-item /thing fixtures into one batched response."""
    root = ET.Element("items")
    for external_id in external_ids:
        path = FIXTURES_DIR / f"thing_{external_id}.xml"
        if path.exists():
            root.extend(ET.fromstring(load_xml(path.name)).findall("item"))
    return ET.tostring(root, encoding="unicode")


class FakeCatalog:
    """Scripted CatalogSource that records every call."""

    def __init__(
        self,
        entries: Iterable[CatalogEntry] = (),
        *,
        search: dict[str, int] | None = None,
        hot: Iterable[CatalogEntry] = (),
        suggestions: Iterable[GameSuggestion] = (),
    ) -> None:
        self.entries = {e.external_id: e for e in entries}
        self.search = {k.lower(): v for k, v in (search or {}).items()}
        self.hot = list(hot)
        self.suggestions = list(suggestions)
        self.searched: list[str] = []
        self.fetched: list[int] = []
        self.batches: list[list[int]] = []
        self.suggestion_calls: list[tuple[str, int, int]] = []

    async def search_by_name(self, name: str) -> CatalogEntry | None:
        self.searched.append(name)
        external_id = self.search.get(name.strip().lower())
        return self.entries.get(external_id) if external_id is not None else None

    async def search_many(self, name: str) -> list[CatalogEntry]:
        entry = await self.search_by_name(name)
        return [entry] if entry is not None else []

    async def fetch_by_id(self, external_id: int) -> CatalogEntry | None:
        self.fetched.append(external_id)
        return self.entries.get(external_id)

    async def fetch_hot_list(self) -> list[CatalogEntry]:
        return list(self.hot)

    async def fetch_many_by_ids(self, external_ids: Iterable[int]) -> list[CatalogEntry]:
        ids = list(external_ids)
        self.batches.append(ids)
        return [self.entries[i] for i in ids if i in self.entries]

    async def search_suggestions(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
    ) -> list[GameSuggestion]:
        self.suggestion_calls.append((query, offset, limit))
        return self.suggestions[offset : offset + limit]
