"""CLI commands for content-collections."""

from . import collections, query, validate, watch

__all__ = ["collections", "query", "validate", "watch"]
