"""Integration tests for the SQLAlchemy game store (in-memory SQLite)."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from support import FakeCatalog

from meepleboard.catalog.contracts import CatalogEntry
from meepleboard.config import DatabaseConfig
from meepleboard.games.models import LocalGame
from meepleboard.games.reconciler import CatalogReconciler
from meepleboard.games.sql_store import (
    SqlAlchemyGameStore,
    create_engine,
    create_schema,
    create_session_factory,
)
from meepleboard.games.store import GameKind, GameStore


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))
    await create_schema(engine)
    yield create_session_factory(engine)
    await engine.dispose()


class TestPersistence:
    """Tests for writes and units of work."""

    @pytest.mark.asyncio
    async def test_implements_protocol(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        async with session_factory() as session:
            assert isinstance(SqlAlchemyGameStore(session), GameStore)

    @pytest.mark.asyncio
    async def test_round_trip_across_sessions(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        base = LocalGame(name="Catan", external_id=13, rank=528, average_rating=7.1)
        expansion = LocalGame(name="Catan: Seafarers", external_id=325)
        expansion.set_base_game(base)

        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            await store.create(base)
            await store.create(expansion)
            await store.commit()

        async with session_factory() as session:
            loaded = await SqlAlchemyGameStore(session).find_by_id(expansion.id)

        assert loaded is not None
        assert loaded.name == "Catan: Seafarers"
        assert loaded.base_game_id == base.id
        assert loaded.created_at.tzinfo is not None
        assert loaded.updated_at is not None

    @pytest.mark.asyncio
    async def test_rollback(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            await store.create(LocalGame(name="Catan", external_id=13))
            await store.rollback()

            assert await store.find_by_external_id(13) is None

    @pytest.mark.asyncio
    async def test_external_id_is_unique(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            await store.create(LocalGame(name="Catan", external_id=13))
            await store.commit()

            with pytest.raises(IntegrityError):
                await store.create(LocalGame(name="Settlers of Catan", external_id=13))
            await store.rollback()

    @pytest.mark.asyncio
    async def test_update(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        game = LocalGame(name="Catan", external_id=13)

        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            await store.create(game)
            await store.commit()

            game.set_rank(400)
            await store.update(game)
            await store.commit()

        async with session_factory() as session:
            loaded = await SqlAlchemyGameStore(session).find_by_external_id(13)

        assert loaded is not None
        assert loaded.rank == 400


class TestQueries:
    """Tests for lookups and searches."""

    @pytest_asyncio.fixture
    async def games(self, session_factory: async_sessionmaker[AsyncSession]) -> list[LocalGame]:
        catan = LocalGame(name="Catan", external_id=13)
        seafarers = LocalGame(name="Catan: Seafarers", external_id=325)
        seafarers.set_base_game(catan)
        cities = LocalGame(name="Catan: Cities & Knights", external_id=926)
        cities.set_base_game_external_id(13)
        junior = LocalGame(name="Catan Junior")
        percent = LocalGame(name="100% Orange Juice", external_id=282954)

        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            for game in (catan, seafarers, cities, junior, percent):
                await store.create(game)
            await store.commit()
        return [catan, seafarers, cities, junior, percent]

    @pytest.mark.asyncio
    async def test_find_by_name(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        games: list[LocalGame],
    ) -> None:
        async with session_factory() as session:
            found = await SqlAlchemyGameStore(session).find_by_name(" CATAN ")

        assert found is not None
        assert found.id == games[0].id

    @pytest.mark.asyncio
    async def test_orphans_and_expansions(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        games: list[LocalGame],
    ) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            orphans = await store.find_orphan_expansions_of(13)
            expansions = await store.find_expansions_of(games[0].id)

        assert [g.name for g in orphans] == ["Catan: Cities & Knights"]
        assert [g.name for g in expansions] == ["Catan: Seafarers"]

    @pytest.mark.asyncio
    async def test_search_by_kind(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        games: list[LocalGame],
    ) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            base = await store.search_by_name("catan", kind=GameKind.BASE)
            expansions = await store.search_by_name("CATAN", kind=GameKind.EXPANSION)
            page = await store.search_by_name("catan", offset=1, limit=2)

        assert [g.name for g in base] == ["Catan", "Catan Junior"]
        assert [g.name for g in expansions] == ["Catan: Cities & Knights", "Catan: Seafarers"]
        assert [g.name for g in page] == ["Catan Junior", "Catan: Cities & Knights"]

    @pytest.mark.asyncio
    async def test_search_escapes_wildcards(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        games: list[LocalGame],
    ) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            literal = await store.search_by_name("100%")
            wildcard = await store.search_by_name("%")

        assert [g.name for g in literal] == ["100% Orange Juice"]
        assert [g.name for g in wildcard] == ["100% Orange Juice"]

    @pytest.mark.asyncio
    async def test_external_id_listing(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        games: list[LocalGame],
    ) -> None:
        async with session_factory() as session:
            store = SqlAlchemyGameStore(session)
            listed = await store.list_with_external_ids()
            exists = await store.exists_by_external_id(926)
            missing = await store.exists_by_external_id(1)

        assert [g.external_id for g in listed] == [13, 325, 926, 282954]
        assert exists is True
        assert missing is False


class TestReconcilerOnSql:
    """The reconciler's unit of work against a real database."""

    @pytest.mark.asyncio
    async def test_expansion_first_then_base(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catan: CatalogEntry,
        seafarers: CatalogEntry,
    ) -> None:
        catalog = FakeCatalog([seafarers], search={"Catan: Seafarers": 325, "Catan": 123})

        async with session_factory() as session:
            reconciler = CatalogReconciler(SqlAlchemyGameStore(session), catalog)
            expansion = await reconciler.resolve_or_import("Catan: Seafarers")
            catalog.entries[123] = catan
            base = await reconciler.resolve_or_import("Catan")

        assert expansion is not None and base is not None

        async with session_factory() as session:
            stored = await SqlAlchemyGameStore(session).find_by_id(expansion.id)

        assert stored is not None
        assert stored.base_game_id == base.id
        assert stored.base_game_external_id == 123
