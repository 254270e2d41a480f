"""
Catalog sync job.

Refreshes every local game that has a catalog id and, optionally,
imports the games on the BGG hot list. Meant to be run periodically
by an external scheduler.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from meepleboard.catalog.base import CatalogSource
from meepleboard.catalog.contracts import CatalogEntry
from meepleboard.games.reconciler import CatalogReconciler
from meepleboard.games.store import GameStore
from meepleboard.logger import get_logger


@dataclass
class SyncProgress:
    """Tracks progress of a sync run."""

    total: int
    completed: int = 0
    current_external_id: int | None = None

    @property
    def percentage(self) -> float:
        """Get completion percentage."""
        if self.total == 0:
            return 100.0
        return (self.completed / self.total) * 100


@dataclass
class SyncResult:
    """Result of a complete sync run."""

    run_id: UUID
    started_at: datetime
    completed_at: datetime
    requested: int
    received: int
    refreshed: int
    imported: int
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
            "requested": self.requested,
            "received": self.received,
            "refreshed": self.refreshed,
            "imported": self.imported,
            "failed": self.failed,
            "errors": self.errors,
        }


class CatalogSyncJob:
    """
    Bulk refresh of local games from the catalog.

    Per-game failures are recorded in the result and do not stop the
    run; the catalog client already degrades fetch failures to gaps.
    """

    def __init__(
        self,
        store: GameStore,
        catalog: CatalogSource,
        reconciler: CatalogReconciler | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._reconciler = reconciler or CatalogReconciler(store, catalog)
        self._logger = get_logger(__name__, component="sync_job")

    async def run(
        self,
        *,
        include_hot: bool = True,
        on_progress: Callable[[SyncProgress], None] | None = None,
    ) -> SyncResult:
        run_id = uuid4()
        started_at = datetime.now(timezone.utc)
        self._logger.info("Starting catalog sync", run_id=str(run_id), include_hot=include_hot)

        local_games = await self._store.list_with_external_ids()
        wanted: dict[int, None] = dict.fromkeys(
            g.external_id for g in local_games if g.external_id is not None
        )
        self._logger.info("Local games with catalog ids", total=len(wanted))

        if include_hot:
            hot = await self._catalog.fetch_hot_list()
            wanted.update(dict.fromkeys(e.external_id for e in hot))
            self._logger.info("Hot list games", total=len(hot))

        errors: list[dict[str, Any]] = []
        refreshed = imported = 0

        if not wanted:
            self._logger.warning("Nothing to sync")
            entries: list[CatalogEntry] = []
        else:
            entries = await self._catalog.fetch_many_by_ids(list(wanted))
            self._logger.info("Catalog details received", total=len(entries))

        progress = SyncProgress(total=len(entries))

        for entry in entries:
            progress.current_external_id = entry.external_id
            try:
                # Imports earlier in this run may have created or relinked it
                game = await self._store.find_by_external_id(entry.external_id)
                if game is not None:
                    self._reconciler.apply_catalog_entry(game, entry)
                    await self._store.update(game)
                    await self._store.commit()
                    refreshed += 1
                else:
                    await self._reconciler.import_entry(entry)
                    imported += 1
            except Exception as e:
                await self._store.rollback()
                self._logger.warning(
                    "Failed to sync game",
                    external_id=entry.external_id,
                    name=entry.name,
                    error=str(e),
                )
                errors.append({"external_id": entry.external_id, "name": entry.name, "error": str(e)})

            progress.completed += 1
            if on_progress:
                on_progress(progress)

        result = SyncResult(
            run_id=run_id,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            requested=len(wanted),
            received=len(entries),
            refreshed=refreshed,
            imported=imported,
            errors=errors,
        )

        self._logger.info(
            "Catalog sync complete",
            run_id=str(run_id),
            duration_seconds=result.duration_seconds,
            refreshed=refreshed,
            imported=imported,
            failed=result.failed,
        )
        return result
