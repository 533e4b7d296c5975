"""Schema validator for content collections.

Validates an item's metadata mapping against its collection schema. The
checks for a present field run in a fixed order:

  kind -> pattern -> length bounds -> numeric bounds -> enum -> array elements

Array elements are validated recursively against the ``items`` definition,
with errors reported under an indexed path such as ``tags[2]``.

Unknown fields are informational by default: they produce a warning and
their value is kept untouched. A schema with ``additionalProperties: false``
turns them into errors.

The function is pure: no I/O, no shared state, same input same output
(apart from the ``validated_at`` timestamp).
"""

import re
import uuid
from dataclasses import dataclass, field as dataclass_field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping
from urllib.parse import urlparse

from content_collections.schema.model import CollectionSchema, FieldDefinition, FieldKind
from content_collections.schema.values import display_value, is_number, kind_matches

# Keys consumed by the engine itself rather than by the schema. They are not
# reported as unknown unless the schema declares them, in which case they are
# validated like any other field.
RESERVED_FIELDS = frozenset({"slug"})

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationErrorKind(str, Enum):
    """Why a value (or a whole item) failed validation."""

    REQUIRED_FIELD_MISSING = "required-field-missing"
    TYPE_MISMATCH = "type-mismatch"
    PATTERN_MISMATCH = "pattern-mismatch"
    OUT_OF_RANGE = "out-of-range"
    BAD_FORMAT = "bad-format"
    INVALID_ENUM_VALUE = "invalid-enum-value"
    UNKNOWN_FIELD = "unknown-field"
    # Item-level kinds, produced by the collection store
    DUPLICATE_IDENTIFIER = "duplicate-identifier"
    INVALID_IDENTIFIER = "invalid-identifier"
    PARSE_FAILURE = "parse-failure"
    FILE_TOO_LARGE = "file-too-large"
    PROCESSING_TIMEOUT = "processing-timeout"


# Errors about the file rather than its metadata; revalidation keeps them
ITEM_LEVEL_ERROR_KINDS = frozenset(
    {
        ValidationErrorKind.INVALID_IDENTIFIER,
        ValidationErrorKind.PARSE_FAILURE,
        ValidationErrorKind.FILE_TOO_LARGE,
        ValidationErrorKind.PROCESSING_TIMEOUT,
    }
)


class ValidationWarningKind(str, Enum):
    UNKNOWN_FIELD = "unknown-field"


@dataclass(frozen=True)
class ValidationError:
    """A single blocking problem. ``field`` is empty for item-level errors."""

    field: str
    kind: ValidationErrorKind
    message: str
    expected_type: str | None = None
    actual_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "kind": self.kind.value,
            "message": self.message,
            "expected_type": self.expected_type,
            "actual_value": display_value(self.actual_value),
        }


@dataclass(frozen=True)
class ValidationWarning:
    """A non-blocking observation about an item."""

    field: str
    kind: ValidationWarningKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "kind": self.kind.value, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of one validation pass.

    Validity is derived from ``errors`` rather than stored, so a result can
    never claim to be invalid without saying why.
    """

    errors: list[ValidationError] = dataclass_field(default_factory=list)
    warnings: list[ValidationWarning] = dataclass_field(default_factory=list)
    validated_at: datetime = dataclass_field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def with_error(self, error: ValidationError) -> "ValidationResult":
        """Return a copy of this result with one more error appended."""
        return ValidationResult(
            errors=[*self.errors, error],
            warnings=list(self.warnings),
            validated_at=self.validated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "validated_at": self.validated_at.isoformat(),
        }


def item_error(kind: ValidationErrorKind, message: str, actual_value: Any = None) -> ValidationResult:
    """Build a failed result for a problem that concerns the item as a whole."""
    return ValidationResult(
        errors=[ValidationError(field="", kind=kind, message=message, actual_value=actual_value)]
    )


# --- Validation Logic ---


def validate_metadata(schema: CollectionSchema, metadata: Mapping[str, Any]) -> ValidationResult:
    """Validate a metadata mapping against a collection schema.

    Args:
        schema: The collection's schema.
        metadata: Field name -> raw value, as produced by the content parser.

    Returns:
        A ValidationResult; invalid iff at least one error was produced.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []

    # --- Required fields ---
    # Trigger: required name absent, or present with a null value
    # Why: YAML "title:" parses to None, which carries no value
    # Outcome: one required-field-missing error per missing name
    for name in schema.required:
        if metadata.get(name) is None:
            definition = schema.properties[name]
            errors.append(
                ValidationError(
                    field=name,
                    kind=ValidationErrorKind.REQUIRED_FIELD_MISSING,
                    message=f"Missing required field: {name}",
                    expected_type=definition.type_hint,
                )
            )

    # --- Present fields ---
    for name, value in metadata.items():
        definition = schema.properties.get(name)

        if definition is None:
            if name in RESERVED_FIELDS:
                continue
            if schema.additional_properties:
                warnings.append(
                    ValidationWarning(
                        field=name,
                        kind=ValidationWarningKind.UNKNOWN_FIELD,
                        message=f"Field '{name}' is present but not defined in schema",
                    )
                )
            else:
                errors.append(
                    ValidationError(
                        field=name,
                        kind=ValidationErrorKind.UNKNOWN_FIELD,
                        message=f"Field '{name}' is not allowed by this schema",
                        actual_value=value,
                    )
                )
            continue

        if value is None:
            continue

        errors.extend(_validate_value(definition, name, value))

    return ValidationResult(errors=errors, warnings=warnings)


def _validate_value(definition: FieldDefinition, path: str, value: Any) -> list[ValidationError]:
    """Validate one value; ``path`` is the reported field name (e.g. ``tags[2]``)."""

    def error(kind: ValidationErrorKind, message: str) -> ValidationError:
        return ValidationError(
            field=path,
            kind=kind,
            message=message,
            expected_type=definition.type_hint,
            actual_value=value,
        )

    # --- Kind ---
    if not kind_matches(definition.kind, value):
        return [
            error(
                ValidationErrorKind.TYPE_MISMATCH,
                f"Field '{path}' expected {definition.type_hint}, got {type(value).__name__}",
            )
        ]

    if definition.integer and isinstance(value, float) and not value.is_integer():
        return [
            error(ValidationErrorKind.TYPE_MISMATCH, f"Field '{path}' expected an integer, got {value}")
        ]

    errors: list[ValidationError] = []

    # --- Pattern ---
    if definition.pattern is not None and not definition.pattern.search(value):
        errors.append(
            error(
                ValidationErrorKind.PATTERN_MISMATCH,
                f"Field '{path}' does not match pattern '{definition.pattern.pattern}'",
            )
        )

    # --- Length bounds ---
    if definition.kind == FieldKind.STRING:
        length = len(value)
        if definition.min_length is not None and length < definition.min_length:
            errors.append(
                error(
                    ValidationErrorKind.OUT_OF_RANGE,
                    f"Field '{path}' is shorter than {definition.min_length} characters",
                )
            )
        if definition.max_length is not None and length > definition.max_length:
            errors.append(
                error(
                    ValidationErrorKind.OUT_OF_RANGE,
                    f"Field '{path}' is longer than {definition.max_length} characters",
                )
            )

    # --- Numeric bounds ---
    if definition.kind == FieldKind.NUMBER and is_number(value):
        if definition.minimum is not None and value < definition.minimum:
            errors.append(
                error(
                    ValidationErrorKind.OUT_OF_RANGE,
                    f"Field '{path}' is less than minimum {definition.minimum}",
                )
            )
        if definition.maximum is not None and value > definition.maximum:
            errors.append(
                error(
                    ValidationErrorKind.OUT_OF_RANGE,
                    f"Field '{path}' is greater than maximum {definition.maximum}",
                )
            )

    # --- Format ---
    format_message = _check_format(definition, value)
    if format_message:
        errors.append(error(ValidationErrorKind.BAD_FORMAT, f"Field '{path}' {format_message}"))

    # --- Enum ---
    if definition.enum is not None:
        comparable = value.isoformat() if isinstance(value, date) else value
        if comparable not in definition.enum:
            allowed = ", ".join(str(v) for v in definition.enum)
            errors.append(
                error(
                    ValidationErrorKind.INVALID_ENUM_VALUE,
                    f"Field '{path}' has invalid value {display_value(value)!r} (allowed: {allowed})",
                )
            )

    # --- Array elements ---
    if definition.kind == FieldKind.ARRAY and definition.items is not None:
        for index, element in enumerate(value):
            element_path = f"{path}[{index}]"
            if element is None:
                errors.append(
                    ValidationError(
                        field=element_path,
                        kind=ValidationErrorKind.TYPE_MISMATCH,
                        message=f"Field '{element_path}' expected {definition.items.type_hint}, got null",
                        expected_type=definition.items.type_hint,
                        actual_value=None,
                    )
                )
                continue
            errors.extend(_validate_value(definition.items, element_path, element))

    return errors


def _check_format(definition: FieldDefinition, value: Any) -> str | None:
    """Return a problem description if ``value`` violates the field's format tag."""
    fmt = definition.format
    if fmt is None:
        return None

    if definition.kind == FieldKind.DATE:
        if isinstance(value, date):
            return None
        try:
            if fmt == "date":
                date.fromisoformat(value.strip())
            else:
                datetime.fromisoformat(value.strip())
        except ValueError:
            return f"is not a valid {fmt}: {value!r}"
        return None

    if fmt == "email" and not _EMAIL_RE.match(value):
        return f"is not a valid email address: {value!r}"
    if fmt == "uri":
        parsed = urlparse(value)
        if not parsed.scheme or not (parsed.netloc or parsed.path):
            return f"is not a valid URI: {value!r}"
    if fmt == "uuid":
        try:
            uuid.UUID(value)
        except ValueError:
            return f"is not a valid UUID: {value!r}"
    return None
