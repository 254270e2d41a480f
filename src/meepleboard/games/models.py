"""
Local game entity.

A LocalGame is the application's own record of a board game. Catalog
fields are mirrored from BGG and only change through the reconciler;
mutators validate their input and bump `updated_at` on real changes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4


class GameValidationError(ValueError):
    """Raised when a game would violate one of its invariants."""


class GameNotFoundError(LookupError):
    """Raised when a referenced local game does not exist."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise GameValidationError(message)
    return value


@dataclass(eq=False)
class LocalGame:
    """A board game (or expansion) owned by the catalog store."""

    name: str
    description: str = ""
    image_url: str = ""
    supports_solo_mode: bool = False
    id: UUID = field(default_factory=uuid4)
    external_id: int | None = None
    rank: int | None = None
    average_rating: float | None = None
    year_published: int | None = None
    base_game_id: UUID | None = None
    base_game_external_id: int | None = None
    is_approved: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.name = _require_text(self.name, "Game name is required").strip()
        self._check_external_id(self.external_id)
        self._check_rank(self.rank)
        self._check_rating(self.average_rating)
        self._check_base_external_id(self.base_game_external_id)
        if self.base_game_id is not None and self.base_game_id == self.id:
            raise GameValidationError("A game cannot be its own base game")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalGame):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_expansion(self) -> bool:
        """Expansions carry a base game, resolved or not."""
        return self.base_game_id is not None or self.base_game_external_id is not None

    # Validation

    @staticmethod
    def _check_external_id(value: int | None) -> None:
        if value is not None and value < 0:
            raise GameValidationError("External id cannot be negative")

    @staticmethod
    def _check_rank(value: int | None) -> None:
        if value is not None and value < 0:
            raise GameValidationError("Rank cannot be negative")

    @staticmethod
    def _check_rating(value: float | None) -> None:
        if value is not None and not 0 <= value <= 10:
            raise GameValidationError("Average rating must be between 0 and 10")

    @staticmethod
    def _check_base_external_id(value: int | None) -> None:
        if value is not None and value <= 0:
            raise GameValidationError("Base game external id must be positive")

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    # Mutators

    def update_details(
        self,
        name: str,
        description: str,
        image_url: str,
        supports_solo_mode: bool,
    ) -> None:
        """Replace the descriptive fields."""
        name = _require_text(name, "Game name cannot be empty").strip()
        if (
            self.name != name
            or self.description != description
            or self.image_url != image_url
            or self.supports_solo_mode != supports_solo_mode
        ):
            self.name = name
            self.description = description
            self.image_url = image_url
            self.supports_solo_mode = supports_solo_mode
            self._touch()

    def set_external_id(self, external_id: int | None) -> None:
        self._check_external_id(external_id)
        if self.external_id != external_id:
            self.external_id = external_id
            self._touch()

    def set_rank(self, rank: int | None) -> None:
        self._check_rank(rank)
        if self.rank != rank:
            self.rank = rank
            self._touch()

    def set_average_rating(self, rating: float | None) -> None:
        self._check_rating(rating)
        if self.average_rating != rating:
            self.average_rating = rating
            self._touch()

    def set_year_published(self, year: int | None) -> None:
        if self.year_published != year:
            self.year_published = year
            self._touch()

    def set_base_game(self, base_game: "LocalGame") -> None:
        """
        Link this game to its base game.

        Raises:
            GameValidationError: If the base game is this game
        """
        if base_game.id == self.id:
            raise GameValidationError("A game cannot be its own base game")
        if self.base_game_id != base_game.id:
            self.base_game_id = base_game.id
            self._touch()

    def set_base_game_external_id(self, base_external_id: int | None) -> None:
        """Record a base game known only by its catalog id."""
        self._check_base_external_id(base_external_id)
        if self.base_game_external_id != base_external_id:
            self.base_game_external_id = base_external_id
            self._touch()

    def approve(self) -> None:
        if not self.is_approved:
            self.is_approved = True
            self._touch()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "supports_solo_mode": self.supports_solo_mode,
            "external_id": self.external_id,
            "rank": self.rank,
            "average_rating": self.average_rating,
            "year_published": self.year_published,
            "base_game_id": str(self.base_game_id) if self.base_game_id else None,
            "base_game_external_id": self.base_game_external_id,
            "is_expansion": self.is_expansion,
            "is_approved": self.is_approved,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
