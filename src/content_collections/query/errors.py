"""
Exceptions for query parsing.

Every query error identifies the parameter it came from and, where it can,
the 1-based position and fragment that caused it, so callers can point at
the exact mistake.
"""

from typing import Any

from content_collections.errors import ContentCollectionsError


class QueryError(ContentCollectionsError):
    """Base exception for malformed or disallowed queries."""

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        position: int | None = None,
        fragment: str | None = None,
    ):
        self.message = message
        self.parameter = parameter
        self.position = position
        self.fragment = fragment
        location = ""
        if parameter is not None:
            location = f" in '{parameter}'"
        if position is not None:
            location += f" at position {position}"
        if fragment:
            location += f" near {fragment!r}"
        super().__init__(f"{message}{location}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "parameter": self.parameter,
            "position": self.position,
            "fragment": self.fragment,
        }


class QuerySyntaxError(QueryError):
    """Raised when a query parameter does not follow the grammar."""

    pass


class UnknownFieldError(QueryError):
    """Raised when a query references a field the schema does not declare."""

    def __init__(self, field: str, available: list[str], **kwargs):
        self.field = field
        self.available = available
        super().__init__(
            f"Field '{field}' does not exist in schema "
            f"(available fields: {', '.join(available) or 'none'})",
            **kwargs,
        )


class PageSizeError(QueryError):
    """Raised when top/skip are out of range."""

    pass
