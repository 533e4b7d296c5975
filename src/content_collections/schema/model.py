"""Schema model for content collections.

Passive, immutable descriptions of what a collection's metadata may look
like. The vocabulary is a small subset of JSON Schema:

  Declaration                          -> FieldDefinition
  ------------------------------------------------------------------
  {"type": "string", "pattern": ...}   -> STRING with pattern
  {"type": "string", "format": "date"} -> DATE
  {"type": "integer", "minimum": 0}    -> NUMBER, integer=True
  {"type": "array", "items": {...}}    -> ARRAY with nested items

Instances are built by ``schema.loader`` which enforces every structural
invariant; nothing here validates itself.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping


class FieldKind(Enum):
    """The value kinds a field can declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"


# Format tags understood by the validator, keyed by the kind they apply to.
STRING_FORMATS = frozenset({"email", "uri", "uuid"})
DATE_FORMATS = frozenset({"date", "date-time"})

_FIELD_PATH_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_\-]*)(?:\[(\d+)\])?$")


@dataclass(frozen=True)
class FieldDefinition:
    """A single field declaration."""

    name: str
    kind: FieldKind
    format: str | None = None
    pattern: re.Pattern | None = None
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False  # declared as "integer" rather than "number"
    enum: tuple[Any, ...] | None = None
    items: "FieldDefinition | None" = None  # element shape, ARRAY only
    description: str | None = None

    @property
    def type_hint(self) -> str:
        """Human readable expected type, used in validation messages."""
        if self.kind == FieldKind.ARRAY and self.items is not None:
            return f"array<{self.items.type_hint}>"
        if self.kind == FieldKind.NUMBER and self.integer:
            return "integer"
        if self.format:
            return f"{self.kind.value}({self.format})"
        return self.kind.value


@dataclass(frozen=True)
class CollectionSchema:
    """The declared shape of every item in one collection."""

    properties: Mapping[str, FieldDefinition]
    required: tuple[str, ...] = ()
    additional_properties: bool = True  # False turns unknown-field warnings into errors
    title: str | None = None
    description: str | None = None

    def __post_init__(self):
        # Freeze the mapping so a loaded schema can never be edited in place.
        if not isinstance(self.properties, MappingProxyType):
            object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def field(self, name: str) -> FieldDefinition | None:
        """Look up a top-level field by name."""
        return self.properties.get(name)

    def resolve_path(self, path: str) -> FieldDefinition | None:
        """Look up a field path such as ``title`` or ``tags[0]``.

        An indexed path resolves to the element definition of an array
        field. Returns None when the path names nothing in this schema.
        """
        match = _FIELD_PATH_RE.match(path.strip())
        if not match:
            return None
        definition = self.properties.get(match.group(1))
        if definition is None or match.group(2) is None:
            return definition
        if definition.kind != FieldKind.ARRAY:
            return None
        return definition.items

    @property
    def field_names(self) -> list[str]:
        return list(self.properties.keys())


@dataclass(frozen=True)
class Collection:
    """A named, schema-governed folder of content files."""

    name: str
    folder: Path
    schema: CollectionSchema
    description: str | None = None
    # Extra, non-identity information kept for reporting
    source: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
