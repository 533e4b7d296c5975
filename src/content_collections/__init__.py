"""content-collections - typed, queryable collections of Markdown and JSON content."""

__version__ = "0.4.0"
