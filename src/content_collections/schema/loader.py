"""Schema loader for content collections.

Turns the raw schema mapping from the collections file into a
``CollectionSchema``. Every structural problem is a configuration error
raised here, before a single content file is scanned; the validator can
therefore trust the schema it is handed.
"""

import re
from typing import Any

from content_collections.errors import SchemaConfigError
from content_collections.schema.model import (
    DATE_FORMATS,
    STRING_FORMATS,
    CollectionSchema,
    FieldDefinition,
    FieldKind,
)

COLLECTION_NAME_RE = re.compile(r"^[a-z0-9-]+$")

# Declared "type" -> (kind, integer flag)
_TYPE_MAP: dict[str, tuple[FieldKind, bool]] = {
    "string": (FieldKind.STRING, False),
    "number": (FieldKind.NUMBER, False),
    "integer": (FieldKind.NUMBER, True),
    "boolean": (FieldKind.BOOLEAN, False),
    "date": (FieldKind.DATE, False),
    "array": (FieldKind.ARRAY, False),
}

_KNOWN_KEYS = frozenset(
    {
        "type",
        "format",
        "pattern",
        "minLength",
        "maxLength",
        "minimum",
        "maximum",
        "enum",
        "items",
        "description",
        "title",
        "default",
        "examples",
    }
)


def validate_collection_name(name: str) -> str:
    """Reject collection names outside ``[a-z0-9-]+``."""
    if not isinstance(name, str) or not COLLECTION_NAME_RE.match(name):
        raise SchemaConfigError(
            f"Invalid collection name {name!r}: only lowercase letters, digits and '-' are allowed",
            collection=str(name),
        )
    return name


def parse_collection_schema(raw: Any, collection: str | None = None) -> CollectionSchema:
    """Parse a schema mapping into a CollectionSchema.

    Args:
        raw: The ``schema`` value from the collections file.
        collection: Collection name, used only for error messages.

    Returns:
        An immutable CollectionSchema.

    Raises:
        SchemaConfigError: If the schema is structurally invalid.
    """
    if not isinstance(raw, dict):
        raise SchemaConfigError("Schema must be a mapping", collection=collection)

    declared_type = raw.get("type", "object")
    if declared_type != "object":
        raise SchemaConfigError(
            f"Top-level schema type must be 'object', got {declared_type!r}",
            collection=collection,
        )

    properties_raw = raw.get("properties", {})
    if not isinstance(properties_raw, dict):
        raise SchemaConfigError("'properties' must be a mapping", collection=collection)

    properties: dict[str, FieldDefinition] = {}
    for name, definition in properties_raw.items():
        properties[name] = parse_field_definition(name, definition, collection=collection)

    required_raw = raw.get("required", [])
    if not isinstance(required_raw, list) or not all(isinstance(r, str) for r in required_raw):
        raise SchemaConfigError("'required' must be a list of field names", collection=collection)

    # --- Every required name must be declared ---
    for name in required_raw:
        if name not in properties:
            raise SchemaConfigError(
                f"Required field '{name}' is not declared in 'properties'",
                collection=collection,
                field=name,
            )

    additional = raw.get("additionalProperties", True)
    if not isinstance(additional, bool):
        raise SchemaConfigError(
            "'additionalProperties' must be true or false", collection=collection
        )

    return CollectionSchema(
        properties=properties,
        # dict.fromkeys keeps order and drops repeats
        required=tuple(dict.fromkeys(required_raw)),
        additional_properties=additional,
        title=raw.get("title"),
        description=raw.get("description"),
    )


def parse_field_definition(
    name: str, raw: Any, collection: str | None = None
) -> FieldDefinition:
    """Parse and check a single field declaration (recursively for arrays)."""
    if not isinstance(raw, dict):
        raise SchemaConfigError(
            "Field definition must be a mapping", collection=collection, field=name
        )

    def fail(message: str) -> SchemaConfigError:
        return SchemaConfigError(message, collection=collection, field=name)

    unknown_keys = set(raw) - _KNOWN_KEYS
    if unknown_keys:
        raise fail(f"Unsupported schema keyword(s): {', '.join(sorted(unknown_keys))}")

    type_name = raw.get("type")
    if type_name is None:
        raise fail("Field is missing 'type'")
    if type_name not in _TYPE_MAP:
        raise fail(
            f"Unsupported type {type_name!r} (expected one of: {', '.join(_TYPE_MAP)})"
        )
    kind, integer = _TYPE_MAP[type_name]

    # --- Format ---
    # Trigger: format date/date-time on a string
    # Why: dates are their own kind so queries can compare them chronologically
    # Outcome: kind switches to DATE, format is kept for the validator
    fmt = raw.get("format")
    if fmt is not None:
        if kind == FieldKind.STRING and fmt in DATE_FORMATS:
            kind = FieldKind.DATE
        elif kind == FieldKind.STRING and fmt in STRING_FORMATS:
            pass
        elif kind == FieldKind.DATE and fmt in DATE_FORMATS:
            pass
        else:
            raise fail(f"Format {fmt!r} is not valid for type {type_name!r}")
    elif kind == FieldKind.DATE:
        fmt = "date"

    # --- Pattern (string kinds only) ---
    pattern = None
    if "pattern" in raw:
        if kind != FieldKind.STRING:
            raise fail("'pattern' only applies to string fields")
        try:
            pattern = re.compile(raw["pattern"])
        except (re.error, TypeError) as e:
            raise fail(f"Invalid regular expression {raw['pattern']!r}: {e}") from e

    # --- Length bounds (string kinds only) ---
    min_length = raw.get("minLength")
    max_length = raw.get("maxLength")
    if min_length is not None or max_length is not None:
        if kind != FieldKind.STRING:
            raise fail("'minLength'/'maxLength' only apply to string fields")
        for label, bound in (("minLength", min_length), ("maxLength", max_length)):
            if bound is not None and (
                not isinstance(bound, int) or isinstance(bound, bool) or bound < 0
            ):
                raise fail(f"'{label}' must be a non-negative integer")
        if min_length is not None and max_length is not None and min_length > max_length:
            raise fail("'minLength' is greater than 'maxLength'")

    # --- Numeric bounds (number kinds only) ---
    minimum = raw.get("minimum")
    maximum = raw.get("maximum")
    if minimum is not None or maximum is not None:
        if kind != FieldKind.NUMBER:
            raise fail("'minimum'/'maximum' only apply to number fields")
        for label, bound in (("minimum", minimum), ("maximum", maximum)):
            if bound is not None and (
                not isinstance(bound, (int, float)) or isinstance(bound, bool)
            ):
                raise fail(f"'{label}' must be a number")
        if minimum is not None and maximum is not None and minimum > maximum:
            raise fail("'minimum' is greater than 'maximum'")

    # --- Array items ---
    items = None
    if kind == FieldKind.ARRAY:
        if "items" not in raw:
            raise fail("Array field requires an 'items' definition")
        items = parse_field_definition(f"{name}[]", raw["items"], collection=collection)
    elif "items" in raw:
        raise fail("'items' only applies to array fields")

    # --- Enum ---
    enum = None
    if "enum" in raw:
        values = raw["enum"]
        if not isinstance(values, list) or not values:
            raise fail("'enum' must be a non-empty list")
        if kind == FieldKind.ARRAY:
            raise fail("'enum' on an array field belongs in its 'items' definition")
        for value in values:
            if not _enum_value_matches(kind, value):
                raise fail(f"Enum value {value!r} does not match type {type_name!r}")
        enum = tuple(values)

    return FieldDefinition(
        name=name,
        kind=kind,
        format=fmt,
        pattern=pattern,
        min_length=min_length,
        max_length=max_length,
        minimum=minimum,
        maximum=maximum,
        integer=integer,
        enum=enum,
        items=items,
        description=raw.get("description"),
    )


def _enum_value_matches(kind: FieldKind, value: Any) -> bool:
    if kind in (FieldKind.STRING, FieldKind.DATE):
        return isinstance(value, str)
    if kind == FieldKind.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == FieldKind.BOOLEAN:
        return isinstance(value, bool)
    return False
