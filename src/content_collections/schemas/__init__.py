"""Pydantic response schemas."""

from content_collections.schemas.collection import (
    CollectionSummary,
    CollectionValidationReport,
    ItemValidationErrors,
    QueryPage,
)

__all__ = [
    "CollectionSummary",
    "CollectionValidationReport",
    "ItemValidationErrors",
    "QueryPage",
]
