"""
Command-line interface for the MeepleBoard game catalog.

Provides commands to query BoardGameGeek, import games into the
local store and run the catalog sync job manually.
"""

import asyncio
import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from meepleboard.catalog import BGGClient
from meepleboard.config import get_settings
from meepleboard.games import (
    CatalogReconciler,
    CatalogSyncJob,
    LocalGame,
    SuggestionService,
    SyncProgress,
)
from meepleboard.games.sql_store import (
    SqlAlchemyGameStore,
    create_engine,
    create_schema,
    create_session_factory,
)
from meepleboard.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__, component="cli")


class CLIOutput(BaseModel):
    """Structured output for CLI commands."""

    success: bool
    command: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | list[Any] | None = None
    error: str | None = None


def print_json(output: CLIOutput) -> None:
    """Print output as formatted JSON."""
    print(json.dumps(output.model_dump(), indent=2, default=str))


@asynccontextmanager
async def open_catalog() -> AsyncIterator[tuple[SqlAlchemyGameStore, BGGClient]]:
    """Open a store session and a BGG client for one command."""
    engine = create_engine()
    try:
        await create_schema(engine)
        session_factory = create_session_factory(engine)
        async with session_factory() as session, BGGClient() as bgg:
            yield SqlAlchemyGameStore(session), bgg
    finally:
        await engine.dispose()


def _game_output(command: str, game: LocalGame | None, missing: str) -> CLIOutput:
    return CLIOutput(
        success=game is not None,
        command=command,
        data=game.to_dict() if game is not None else None,
        error=None if game is not None else missing,
    )


async def cmd_test_config() -> None:
    """Test configuration loading."""
    settings = get_settings()

    output = CLIOutput(
        success=True,
        command="test-config",
        data={
            "environment": settings.environment,
            "bgg_base_url": settings.bgg.base_url,
            "bgg_batch_size": settings.bgg.batch_size,
            "bgg_candidate_delay_seconds": settings.bgg.candidate_delay_seconds,
            "retry_max_attempts": settings.retry.max_attempts,
            "database_url": settings.database.url,
            "api_token_configured": settings.bgg.api_token is not None,
        },
    )
    print_json(output)


async def cmd_init_db() -> None:
    """Create the catalog tables."""
    engine = create_engine()
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()

    print_json(CLIOutput(success=True, command="init-db", data={"url": str(engine.url)}))


async def cmd_search(name: str) -> None:
    """Best catalog match for a name, without touching the store."""
    logger.info("Searching catalog", name=name)

    async with BGGClient() as bgg:
        entry = await bgg.search_by_name(name)

    output = CLIOutput(
        success=entry is not None,
        command="search",
        data=entry.model_dump() if entry is not None else None,
        error=None if entry is not None else f"No match for '{name}'",
    )
    print_json(output)


async def cmd_resolve(name: str) -> None:
    """Get a game by name, importing it from BGG on a miss."""
    logger.info("Resolving game", name=name)

    async with open_catalog() as (store, bgg):
        game = await CatalogReconciler(store, bgg).resolve_or_import(name)

    print_json(_game_output("resolve", game, f"No match for '{name}'"))


async def cmd_import(external_id: int) -> None:
    """Import a game by its BGG id."""
    logger.info("Importing game", external_id=external_id)

    async with open_catalog() as (store, bgg):
        game = await CatalogReconciler(store, bgg).import_by_external_id(external_id)

    print_json(_game_output("import", game, f"No BGG entry with id {external_id}"))


async def cmd_hot() -> None:
    """Show the BGG hot list."""
    async with BGGClient() as bgg:
        entries = await bgg.fetch_hot_list()

    output = CLIOutput(
        success=bool(entries),
        command="hot",
        data=[
            {"external_id": e.external_id, "name": e.name, "rank": e.rank}
            for e in entries
        ],
        error=None if entries else "Hot list unavailable",
    )
    print_json(output)


async def cmd_suggest(query: str, kind: str = "any") -> None:
    """Autocomplete suggestions (local first, BGG top-up)."""
    async with open_catalog() as (store, bgg):
        service = SuggestionService(store, bgg)
        if kind == "base":
            suggestions = await service.suggest_base_games(query)
        elif kind == "expansion":
            suggestions = await service.suggest_expansions(query)
        else:
            suggestions = await service.suggest(query)

    output = CLIOutput(
        success=True,
        command="suggest",
        data=[s.model_dump(mode="json") for s in suggestions],
    )
    print_json(output)


async def cmd_sync(include_hot: bool = True) -> None:
    """Run the catalog sync job."""
    print("MeepleBoard - Catalog Sync")
    print(f"{'='*50}")
    print(f"  Hot list: {'yes' if include_hot else 'no'}")
    print(f"{'='*50}\n")

    def on_progress(progress: SyncProgress) -> None:
        bar_length = 30
        filled = int(bar_length * progress.percentage / 100)
        bar = "█" * filled + "░" * (bar_length - filled)
        print(
            f"\r  [{bar}] {progress.percentage:.1f}% "
            f"| {progress.completed}/{progress.total} "
            f"| bgg_id={progress.current_external_id or ''}     ",
            end="",
            flush=True,
        )

    async with open_catalog() as (store, bgg):
        result = await CatalogSyncJob(store, bgg).run(
            include_hot=include_hot,
            on_progress=on_progress,
        )

    print("\n")

    print("Sync Complete!")
    print(f"{'='*50}")
    print(f"  Run ID: {result.run_id}")
    print(f"  Duration: {result.duration_seconds:.2f}s")
    print(f"  Requested: {result.requested}  Received: {result.received}")
    print(f"  Refreshed: {result.refreshed}  Imported: {result.imported}")

    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for err in result.errors[:5]:
            print(f"    - {err['external_id']}/{err['name']}: {err['error'][:50]}")


def print_usage() -> None:
    """Print CLI usage information."""
    usage = """
MeepleBoard Catalog CLI
=======================

Usage: meepleboard <command> [arguments]

Commands:
  test-config                 Test configuration loading
  init-db                     Create the catalog tables
  search <name>               Best BGG match for a name (read-only)
  resolve <name>              Get a game by name, importing it on a miss
  import <bgg_id>             Import a game by BGG id
  hot                         Show the BGG hot list
  suggest <query>             Autocomplete suggestions
  sync                        Refresh local games from BGG

Options:
  --kind <any|base|expansion> Filter for 'suggest' (default: any)
  --no-hot                    Skip the hot list in 'sync'

Examples:
  meepleboard resolve "Catan"
  meepleboard suggest cat --kind expansion
"""
    print(usage)


def _option(name: str, default: str) -> str:
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
    return default


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1]

    try:
        if command == "test-config":
            asyncio.run(cmd_test_config())

        elif command == "init-db":
            asyncio.run(cmd_init_db())

        elif command in ("search", "resolve"):
            if len(sys.argv) < 3:
                print("Error: name required")
                sys.exit(1)
            handler = cmd_search if command == "search" else cmd_resolve
            asyncio.run(handler(sys.argv[2]))

        elif command == "import":
            if len(sys.argv) < 3:
                print("Error: bgg_id required")
                sys.exit(1)
            asyncio.run(cmd_import(int(sys.argv[2])))

        elif command == "hot":
            asyncio.run(cmd_hot())

        elif command == "suggest":
            if len(sys.argv) < 3:
                print("Error: query required")
                sys.exit(1)
            kind = _option("--kind", "any").lower()
            if kind not in ("any", "base", "expansion"):
                print(f"Error: Invalid kind '{kind}'. Use 'any', 'base' or 'expansion'.")
                sys.exit(1)
            asyncio.run(cmd_suggest(sys.argv[2], kind))

        elif command == "sync":
            asyncio.run(cmd_sync(include_hot="--no-hot" not in sys.argv))

        elif command in ("help", "--help", "-h"):
            print_usage()

        else:
            print(f"Unknown command: {command}")
            print_usage()
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("CLI error", error=str(e))
        output = CLIOutput(
            success=False,
            command=command,
            error=str(e),
        )
        print_json(output)
        sys.exit(1)


if __name__ == "__main__":
    main()
