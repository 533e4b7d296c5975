"""Core data model: content items as served by a collection store."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from content_collections.schema.validator import ValidationResult
from content_collections.schema.values import display_value


@dataclass(frozen=True)
class Item:
    """One unit of content derived from one file.

    Items are owned by a CollectionStore and never mutated: a rescan of the
    file produces a new Item, so a reference held by a caller stays a
    consistent view of the file at the time it was scanned.

    Attributes:
        identifier: Unique key within the collection
        path: Absolute POSIX path of the source file
        metadata: Field name -> raw value, in file order
        validation: Result of validating ``metadata`` (plus item-level checks)
        body: Markdown body, None for pure-data (JSON) content
        modified_at: File modification time (UTC)
        revision: Snapshot version in which this item was last scanned
    """

    identifier: str
    path: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    validation: ValidationResult = field(default_factory=ValidationResult)
    body: Optional[str] = None
    modified_at: Optional[datetime] = None
    revision: int = 0

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid

    def to_dict(self, include_body: bool = True) -> dict[str, Any]:
        """Plain JSON-friendly representation."""
        data: dict[str, Any] = {
            "id": self.identifier,
            "path": self.path,
            "metadata": display_value(dict(self.metadata)),
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
        }
        if include_body:
            data["body"] = self.body
        return data
