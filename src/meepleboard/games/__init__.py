"""
Local game catalog: entities, persistence and reconciliation with BGG.
"""

from meepleboard.games.models import GameNotFoundError, GameValidationError, LocalGame
from meepleboard.games.reconciler import CatalogReconciler
from meepleboard.games.store import GameKind, GameStore, InMemoryGameStore, StoreIntegrityError
from meepleboard.games.suggestions import SuggestionService
from meepleboard.games.sync import CatalogSyncJob, SyncProgress, SyncResult

__all__ = [
    # Entities
    "LocalGame",
    "GameNotFoundError",
    "GameValidationError",
    # Persistence
    "GameKind",
    "GameStore",
    "InMemoryGameStore",
    "StoreIntegrityError",
    # Services
    "CatalogReconciler",
    "CatalogSyncJob",
    "SuggestionService",
    "SyncProgress",
    "SyncResult",
]
