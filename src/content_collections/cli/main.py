"""Main CLI entry point for content-collections."""  # pragma: no cover

from content_collections.cli.app import app  # pragma: no cover

# Register commands
from content_collections.cli.commands import (  # noqa: F401  # pragma: no cover
    collections,
    query,
    validate,
    watch,
)

if __name__ == "__main__":  # pragma: no cover
    # start the app
    app()
