"""
External board game catalog (BoardGameGeek).

Typed, best-effort access to the BGG XML API 2 with retry and
backoff on rate limiting and server errors.
"""

from meepleboard.catalog.base import BaseCatalogClient, CatalogSource
from meepleboard.catalog.bgg import BGGClient
from meepleboard.catalog.contracts import CatalogEntry, ExternalId, GameSuggestion
from meepleboard.catalog.errors import (
    CatalogError,
    CatalogFetchError,
    CatalogParseError,
    RateLimitError,
    RequestQueuedError,
    ServerError,
)

__all__ = [
    # Clients
    "BGGClient",
    "BaseCatalogClient",
    "CatalogSource",
    # Contracts
    "CatalogEntry",
    "ExternalId",
    "GameSuggestion",
    # Errors
    "CatalogError",
    "CatalogFetchError",
    "CatalogParseError",
    "RateLimitError",
    "RequestQueuedError",
    "ServerError",
]
