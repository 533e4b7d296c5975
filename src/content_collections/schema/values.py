"""Value helpers shared by the validator and the query engine.

Metadata is untyped at rest: YAML front matter yields ``date`` objects
where JSON yields strings, and both must compare the same way once a
schema says the field is a date.
"""

from datetime import date, datetime, timezone
from typing import Any

from content_collections.schema.model import FieldKind


def is_number(value: Any) -> bool:
    """True for ints and floats; bool is deliberately excluded."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def kind_matches(kind: FieldKind, value: Any) -> bool:
    """Check whether a raw value has the shape a field kind requires."""
    if kind == FieldKind.STRING:
        return isinstance(value, str)
    if kind == FieldKind.NUMBER:
        return is_number(value)
    if kind == FieldKind.BOOLEAN:
        return isinstance(value, bool)
    if kind == FieldKind.DATE:
        return isinstance(value, (str, date))
    if kind == FieldKind.ARRAY:
        return isinstance(value, (list, tuple))
    return False  # pragma: no cover


def to_datetime(value: Any) -> datetime | None:
    """Normalize a date-like value to a naive UTC datetime.

    Accepts ISO-8601 strings, ``date`` and ``datetime`` objects. Returns None
    when the value cannot be read as a date.

    Examples:
        >>> to_datetime("2024-03-01")
        datetime.datetime(2024, 3, 1, 0, 0)
        >>> to_datetime("2024-03-01T10:00:00+02:00")
        datetime.datetime(2024, 3, 1, 8, 0)
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def display_value(value: Any) -> Any:
    """Render a metadata value for messages and JSON output."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [display_value(v) for v in value]
    if isinstance(value, dict):
        return {k: display_value(v) for k, v in value.items()}
    return value
