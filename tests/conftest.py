"""Shared fixtures: catalog entries, stores and a recording sleep."""

from collections.abc import Awaitable, Callable

import pytest

from meepleboard.catalog.contracts import CatalogEntry
from meepleboard.games.store import InMemoryGameStore


@pytest.fixture
def catan() -> CatalogEntry:
    return CatalogEntry(
        external_id=123,
        name="Catan",
        description="Trade, build and settle the island of Catan.",
        image_url="https://cf.geekdo-images.com/catan.jpg",
        rank=528,
        average_rating=7.1,
        year_published=1995,
        min_players=3,
        max_players=4,
    )


@pytest.fixture
def seafarers() -> CatalogEntry:
    return CatalogEntry(
        external_id=325,
        name="Catan: Seafarers",
        description="Adds ships and islands.",
        average_rating=7.0,
        year_published=1997,
        min_players=3,
        is_expansion=True,
        base_external_id=123,
    )


@pytest.fixture
def store() -> InMemoryGameStore:
    return InMemoryGameStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested from the fake sleep, in order."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Awaitable[None]]:
    """Sleep replacement that records the delay and returns at once."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep
