"""Commands for listing collections and reading single items."""

import json
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from content_collections.cli.app import app
from content_collections.cli.commands.command_utils import console, run_with_service
from content_collections.schema.values import display_value
from content_collections.services.collection_service import CollectionService


@app.command("collections")
def list_collections(
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List configured collections with their item counts."""

    async def _list(service: CollectionService):
        return service.list_collections()

    summaries = run_with_service(_list)

    if json_output:
        typer.echo(json.dumps([s.model_dump() for s in summaries], indent=2))
        return

    if not summaries:
        console.print("[yellow]No collections configured.[/yellow]")
        return

    table = Table(title="Collections")
    table.add_column("Name", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Items", justify="right")
    table.add_column("Invalid", justify="right")
    table.add_column("Folder")

    for summary in summaries:
        if not summary.available:
            status = "[red]unavailable[/red]"
        elif summary.invalid_count:
            status = "[yellow]partial[/yellow]"
        else:
            status = "[green]ok[/green]"
        table.add_row(
            summary.name,
            status,
            str(summary.item_count),
            str(summary.invalid_count),
            escape(summary.folder or summary.error or ""),
        )

    console.print(table)


@app.command()
def get(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    identifier: Annotated[str, typer.Argument(help="Item identifier (slug)")],
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of formatted output"),
) -> None:
    """Show one item by identifier."""

    async def _get(service: CollectionService):
        return service.get_item(collection, identifier)

    item = run_with_service(_get)
    if item is None:
        console.print(f"[red]No item '{escape(identifier)}' in collection '{escape(collection)}'[/red]")
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(item.to_dict(), indent=2))
        return

    table = Table(title=f"{collection}/{item.identifier}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in item.metadata.items():
        table.add_row(name, escape(str(display_value(value))))
    console.print(table)
    console.print(f"[dim]{escape(item.path)}[/dim]")
    if item.body:
        console.print(Panel(escape(item.body.strip()), title="body"))
