"""
SQLAlchemy implementation of the catalog store.

One `SqlAlchemyGameStore` wraps one `AsyncSession`, i.e. one unit of
work. Writes are flushed immediately so database constraints (unique
external id, base game foreign key) surface at the call site, and
only become durable on `commit()`.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Select,
    String,
    Text,
    Uuid,
    func,
    or_,
    select,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from meepleboard.config import DatabaseConfig, get_settings
from meepleboard.games.models import LocalGame
from meepleboard.games.store import GameKind, StoreIntegrityError
from meepleboard.logger import get_logger


class Base(DeclarativeBase):
    pass


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GameRecord(Base):
    """Row of the `games` table."""

    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String(1024), default="")
    supports_solo_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    external_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    year_published: Mapped[int | None] = mapped_column(Integer, nullable=True)
    base_game_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("games.id"), nullable=True, index=True
    )
    base_game_external_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def from_entity(cls, game: LocalGame) -> "GameRecord":
        record = cls(id=game.id, created_at=game.created_at)
        record.copy_from(game)
        return record

    def copy_from(self, game: LocalGame) -> None:
        self.name = game.name
        self.description = game.description
        self.image_url = game.image_url
        self.supports_solo_mode = game.supports_solo_mode
        self.external_id = game.external_id
        self.rank = game.rank
        self.average_rating = game.average_rating
        self.year_published = game.year_published
        self.base_game_id = game.base_game_id
        self.base_game_external_id = game.base_game_external_id
        self.is_approved = game.is_approved
        self.updated_at = game.updated_at

    def to_entity(self) -> LocalGame:
        return LocalGame(
            id=self.id,
            name=self.name,
            description=self.description,
            image_url=self.image_url,
            supports_solo_mode=self.supports_solo_mode,
            external_id=self.external_id,
            rank=self.rank,
            average_rating=self.average_rating,
            year_published=self.year_published,
            base_game_id=self.base_game_id,
            base_game_external_id=self.base_game_external_id,
            is_approved=self.is_approved,
            created_at=_as_utc(self.created_at) or datetime.now(timezone.utc),
            updated_at=_as_utc(self.updated_at),
        )


class SqlAlchemyGameStore:
    """GameStore backed by an SQLAlchemy async session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(__name__, component="sql_store")

    async def _first(self, statement: Select[Any]) -> LocalGame | None:
        record = (await self._session.execute(statement.limit(1))).scalars().first()
        return record.to_entity() if record is not None else None

    async def _all(self, statement: Select[Any]) -> list[LocalGame]:
        records = (await self._session.execute(statement)).scalars().all()
        return [r.to_entity() for r in records]

    async def find_by_id(self, game_id: uuid.UUID) -> LocalGame | None:
        record = await self._session.get(GameRecord, game_id)
        return record.to_entity() if record is not None else None

    async def find_by_external_id(self, external_id: int) -> LocalGame | None:
        return await self._first(select(GameRecord).where(GameRecord.external_id == external_id))

    async def find_by_name(self, name: str) -> LocalGame | None:
        return await self._first(
            select(GameRecord).where(func.lower(GameRecord.name) == name.strip().lower())
        )

    async def find_orphan_expansions_of(self, external_id: int) -> list[LocalGame]:
        return await self._all(
            select(GameRecord).where(
                GameRecord.base_game_id.is_(None),
                GameRecord.base_game_external_id == external_id,
            )
        )

    async def find_expansions_of(self, base_game_id: uuid.UUID) -> list[LocalGame]:
        return await self._all(
            select(GameRecord)
            .where(GameRecord.base_game_id == base_game_id)
            .order_by(GameRecord.name)
        )

    async def search_by_name(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
        kind: GameKind = GameKind.ANY,
    ) -> list[LocalGame]:
        statement = select(GameRecord).where(
            func.lower(GameRecord.name).contains(query.strip().lower(), autoescape=True)
        )
        if kind is GameKind.BASE:
            statement = statement.where(
                GameRecord.base_game_id.is_(None),
                GameRecord.base_game_external_id.is_(None),
            )
        elif kind is GameKind.EXPANSION:
            statement = statement.where(
                or_(
                    GameRecord.base_game_id.is_not(None),
                    GameRecord.base_game_external_id.is_not(None),
                )
            )
        return await self._all(
            statement.order_by(GameRecord.name).offset(max(0, offset)).limit(limit)
        )

    async def list_with_external_ids(self) -> list[LocalGame]:
        return await self._all(
            select(GameRecord)
            .where(GameRecord.external_id.is_not(None))
            .order_by(GameRecord.external_id)
        )

    async def exists_by_external_id(self, external_id: int) -> bool:
        found = await self._session.scalar(
            select(GameRecord.id).where(GameRecord.external_id == external_id).limit(1)
        )
        return found is not None

    async def create(self, game: LocalGame) -> None:
        self._session.add(GameRecord.from_entity(game))
        await self._session.flush()
        self._logger.debug("Game staged", game_id=str(game.id), external_id=game.external_id)

    async def update(self, game: LocalGame) -> None:
        record = await self._session.get(GameRecord, game.id)
        if record is None:
            raise StoreIntegrityError(f"Game {game.id} does not exist")
        record.copy_from(game)
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()


def create_engine(config: DatabaseConfig | None = None) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    config = config or get_settings().database
    return create_async_engine(config.url, echo=config.echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create the catalog tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    get_logger(__name__, component="sql_store").info("Schema ready", url=str(engine.url))
