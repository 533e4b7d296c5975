"""Query command."""

import json
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from content_collections.cli.app import app
from content_collections.cli.commands.command_utils import console, run_with_service
from content_collections.schema.values import display_value
from content_collections.schemas.collection import QueryPage
from content_collections.services.collection_service import CollectionService

# Columns shown when the query has no select
DEFAULT_COLUMNS = 4


@app.command()
def query(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    query_string: Annotated[
        str,
        typer.Argument(
            metavar="QUERY",
            help="Query string, e.g. \"filter=draft eq false&orderby=publishDate desc&top=10\"",
        ),
    ] = "",
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Query a collection.

    QUERY uses filter, orderby, top, skip and select parameters joined with
    '&' (a leading '$' on parameter names is accepted).
    """

    async def _query(service: CollectionService):
        page = service.query(collection, query_string)
        fields = service.get_store(collection).collection.schema.field_names
        return page, fields

    page, fields = run_with_service(_query)

    if json_output:
        typer.echo(json.dumps(page.model_dump(), indent=2, default=str))
        return

    _print_page(page, fields)


def _print_page(page: QueryPage, fields: list[str]) -> None:
    selected = {name for item in page.items for name in item["metadata"]}
    columns = [f for f in fields if f in selected][:DEFAULT_COLUMNS]

    table = Table(title=f"{page.collection}: {escape(page.query) or 'all items'}")
    table.add_column("id", style="cyan")
    for name in columns:
        table.add_column(name)

    for item in page.items:
        row = [item["id"]]
        for name in columns:
            value = item["metadata"].get(name)
            row.append("" if value is None else escape(str(display_value(value))))
        table.add_row(*row)

    console.print(table)
    first = page.offset + 1 if page.items else page.offset
    console.print(f"Showing {first}-{page.offset + page.returned} of {page.total_count} matches")
