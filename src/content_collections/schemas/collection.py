"""Response schemas for collection operations."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class QueryPage(BaseModel):
    """One page of query results plus paging metadata."""

    collection: str = Field(..., description="Collection that was queried")
    query: str = Field(..., description="Canonical form of the executed query")
    items: list[dict[str, Any]] = Field(default_factory=list, description="Items on this page")
    total_count: int = Field(..., description="Number of matches before paging")
    offset: int = Field(default=0, description="Zero-based index of the first returned match")
    page_size: int | None = Field(None, description="Requested page size, None for unbounded")

    @property
    def returned(self) -> int:
        return len(self.items)

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total_count


class CollectionSummary(BaseModel):
    """Status line for one configured collection."""

    name: str = Field(..., description="Collection name")
    folder: str | None = Field(None, description="Absolute collection folder")
    description: str | None = Field(None, description="Collection description")
    available: bool = Field(..., description="False if the configuration failed to load")
    item_count: int = Field(default=0, description="Number of served (valid) items")
    invalid_count: int = Field(default=0, description="Number of excluded items")
    version: int = Field(default=0, description="Current snapshot version")
    fields: list[str] = Field(default_factory=list, description="Declared field names")
    error: str | None = Field(None, description="Configuration error, when unavailable")


class ItemValidationErrors(BaseModel):
    """Validation problems of one excluded item."""

    identifier: str = Field(..., description="Identifier the item resolved to")
    path: str = Field(..., description="Source file path")
    errors: list[dict[str, Any]] = Field(default_factory=list, description="Blocking errors")
    warnings: list[dict[str, Any]] = Field(default_factory=list, description="Non-blocking warnings")


class CollectionValidationReport(BaseModel):
    """All invalid items of a collection at one snapshot version."""

    collection: str = Field(..., description="Collection name")
    version: int = Field(..., description="Snapshot version the report describes")
    total_files: int = Field(..., description="Content files scanned")
    valid_count: int = Field(..., description="Items served")
    invalid_count: int = Field(..., description="Items excluded")
    items: list[ItemValidationErrors] = Field(default_factory=list, description="Excluded items")
    generated_at: datetime = Field(..., description="When the snapshot was built")

    @property
    def is_valid(self) -> bool:
        return self.invalid_count == 0
