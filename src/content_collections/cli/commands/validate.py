"""Validation commands: whole-collection reports and single-file checks."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from content_collections.cli.app import app
from content_collections.cli.commands.command_utils import console, run_with_service
from content_collections.schema.validator import ValidationResult
from content_collections.services.collection_service import CollectionService


@app.command()
def validate(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
    strict: bool = typer.Option(False, "--strict", help="Exit with error if any item is invalid"),
) -> None:
    """Report every item excluded from a collection and why."""

    async def _report(service: CollectionService):
        return service.validation_report(collection)

    report = run_with_service(_report)

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
    elif report.is_valid:
        console.print(
            f"[green]All {report.valid_count} items in '{escape(collection)}' are valid.[/green]"
        )
    else:
        table = Table(title=f"Invalid items: {collection}")
        table.add_column("Item", style="cyan")
        table.add_column("Field")
        table.add_column("Kind")
        table.add_column("Message")
        for item in report.items:
            for error in item.errors:
                table.add_row(
                    item.identifier,
                    escape(error["field"] or "-"),
                    error["kind"],
                    escape(error["message"]),
                )
        console.print(table)
        console.print(
            f"\nSummary: {report.valid_count}/{report.total_files} valid, "
            f"{report.invalid_count} invalid"
        )

    if strict and not report.is_valid:
        raise typer.Exit(1)


@app.command()
def check(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    file: Annotated[
        Path,
        typer.Argument(help="Markdown or JSON file to check", exists=True, dir_okay=False),
    ],
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of text"),
) -> None:
    """Check a file against a collection's schema before adding it."""

    async def _check(service: CollectionService) -> ValidationResult:
        return await service.validate_file(collection, file)

    result = run_with_service(_check)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for warning in result.warnings:
            console.print(f"[yellow]warning[/yellow] {escape(warning.field)}: {escape(warning.message)}")
        for error in result.errors:
            console.print(f"[red]error[/red] {escape(error.field or '-')}: {escape(error.message)}")
        if result.is_valid:
            console.print(f"[green]{escape(file.name)} is valid for '{escape(collection)}'[/green]")

    if not result.is_valid:
        raise typer.Exit(1)
