"""Schema system for content collections.

A collection's schema is declared in the collections file using a subset of
JSON Schema, loaded once into immutable dataclasses, and used both to
validate every item and to type-check query field references.
"""

from content_collections.schema.loader import (
    parse_collection_schema,
    parse_field_definition,
    validate_collection_name,
)
from content_collections.schema.model import (
    Collection,
    CollectionSchema,
    FieldDefinition,
    FieldKind,
)
from content_collections.schema.validator import (
    ValidationError,
    ValidationErrorKind,
    ValidationResult,
    ValidationWarning,
    ValidationWarningKind,
    validate_metadata,
)

__all__ = [
    # Model
    "Collection",
    "CollectionSchema",
    "FieldDefinition",
    "FieldKind",
    # Loader
    "parse_collection_schema",
    "parse_field_definition",
    "validate_collection_name",
    # Validator
    "ValidationError",
    "ValidationErrorKind",
    "ValidationResult",
    "ValidationWarning",
    "ValidationWarningKind",
    "validate_metadata",
]
