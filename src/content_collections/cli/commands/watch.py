"""Watch command - keep collections current as files change."""

import asyncio
import signal
import sys

import typer
from loguru import logger
from rich.markup import escape

from content_collections.cli.app import app, get_config
from content_collections.cli.commands.command_utils import console
from content_collections.errors import ConfigurationError
from content_collections.services.collection_service import CollectionService
from content_collections.sync.watch_service import WatchService


async def run_watch() -> None:
    """Load collections, then watch until SIGINT/SIGTERM."""
    service = CollectionService(get_config())
    await service.load()

    for summary in service.list_collections():
        if summary.available:
            console.print(f"[green]{summary.name}[/green]: {summary.item_count} items")
        else:
            console.print(f"[red]{summary.name}[/red]: unavailable ({escape(summary.error or '')})")

    watcher = WatchService(service)

    # --- Signal handling ---
    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        watcher.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    # --- Run ---
    try:
        console.print("Watching for changes, press Ctrl+C to stop")
        await watcher.run()
    finally:
        await service.close()


@app.command()
def watch() -> None:
    """Watch collection folders and the collections file, applying changes as they happen."""
    # On Windows, use SelectorEventLoop to avoid ProactorEventLoop cleanup issues
    if sys.platform == "win32":  # pragma: no cover
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    try:
        asyncio.run(run_watch())
    except ConfigurationError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
