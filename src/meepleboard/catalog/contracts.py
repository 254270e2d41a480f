"""
Data contracts for BoardGameGeek catalog entries.

These Pydantic models are the typed surface the catalog client
hands to the rest of the application; nothing outside the client
sees raw XML.
"""

from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

ExternalId = Annotated[int, Field(gt=0, description="BoardGameGeek thing id")]

UNNAMED = "Unnamed"
NO_DESCRIPTION = "No description."


class CatalogEntry(BaseModel):
    """
    A board game (or expansion) as described by the external catalog.

    Built from a `/thing?stats=1` item; optional numeric fields are
    None whenever the source omits them or they fail to parse.
    """

    # Identifiers
    external_id: ExternalId
    name: str = Field(default=UNNAMED, description="Primary name")

    # Presentation
    description: str = Field(default=NO_DESCRIPTION, description="Markup-free description")
    image_url: str = Field(default="", description="Full-size image URL")
    thumbnail_url: str | None = Field(default=None, description="Thumbnail URL")

    # Statistics
    rank: int | None = Field(default=None, description="Overall board game rank")
    average_rating: float | None = Field(default=None, ge=0, le=10)
    average_weight: float | None = Field(default=None, ge=0, le=5)

    # Facts
    year_published: int | None = None
    min_players: int | None = None
    max_players: int | None = None
    categories: list[str] = Field(default_factory=list)

    # Expansion linkage
    is_expansion: bool = False
    base_external_id: int | None = Field(
        default=None,
        description="Base game id, only when the source links it explicitly",
    )

    @field_validator("categories")
    @classmethod
    def dedupe_categories(cls, v: list[str]) -> list[str]:
        """Drop blanks and duplicates, keeping first-seen order."""
        return list(dict.fromkeys(c for c in v if c and c.strip()))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def supports_solo_mode(self) -> bool:
        """Whether the game can be played by a single player."""
        return self.min_players == 1


class GameSuggestion(BaseModel):
    """Lightweight search hit used for autocomplete listings."""

    id: UUID | None = Field(default=None, description="Local game id, if already imported")
    external_id: ExternalId
    name: str
    year_published: int | None = None
    image_url: str | None = None
    is_expansion: bool = False
