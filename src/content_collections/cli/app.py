from pathlib import Path
from typing import Any, Dict, Optional

import typer

from content_collections.config import ContentCollectionsConfig
from content_collections.utils import setup_logging

# Settings given on the command line; they take precedence over environment variables
config_overrides: Dict[str, Any] = {}


def get_config() -> ContentCollectionsConfig:
    """Build the configuration for the current invocation."""
    return ContentCollectionsConfig(**config_overrides)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import content_collections

        typer.echo(f"content-collections version: {content_collections.__version__}")
        raise typer.Exit()


app = typer.Typer(name="content-collections")


@app.callback()
def app_callback(
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Content root directory (defaults to the current directory)",
    ),
    collections_file: Optional[Path] = typer.Option(
        None,
        "--collections-file",
        "-c",
        help="Collections definition file (defaults to collections.json under the root)",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log progress to stderr"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Content collections - schema-validated, queryable folders of Markdown and JSON."""
    config_overrides.clear()
    if root is not None:
        config_overrides["content_root"] = root
    if collections_file is not None:
        config_overrides["collections_file"] = collections_file

    config = get_config()
    setup_logging(
        log_level=config.log_level if verbose else "ERROR",
        log_file=config.log_file,
    )
