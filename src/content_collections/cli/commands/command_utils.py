"""Utility functions for commands."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from content_collections.cli.app import get_config
from content_collections.errors import ContentCollectionsError
from content_collections.query.errors import QueryError
from content_collections.services.collection_service import CollectionService

console = Console()

T = TypeVar("T")


async def load_service() -> CollectionService:
    """Create a service from the current configuration and run the initial scan."""
    service = CollectionService(get_config())
    await service.load()
    return service


def run_with_service(action: Callable[[CollectionService], Awaitable[T]]) -> T:
    """Load collections, run ``action`` and translate errors into exit codes."""

    async def _run() -> T:
        service = await load_service()
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(_run())
    except QueryError as e:
        console.print(f"[red]Query error: {escape(str(e))}[/red]")
        raise typer.Exit(2)
    except ContentCollectionsError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
