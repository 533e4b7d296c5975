"""Tests for validating item metadata against a collection schema."""

from datetime import date

import pytest

from content_collections.schema.loader import parse_collection_schema
from content_collections.schema.validator import (
    ValidationErrorKind,
    ValidationWarningKind,
    validate_metadata,
)


def _kinds(result):
    return [(e.field, e.kind) for e in result.errors]


class TestRequiredFields:
    def test_missing_required_fields(self, blog_schema):
        """Every missing required field yields its own error."""
        result = validate_metadata(blog_schema, {"author": "Jane"})

        assert result.is_valid is False
        assert _kinds(result) == [
            ("title", ValidationErrorKind.REQUIRED_FIELD_MISSING),
            ("publishDate", ValidationErrorKind.REQUIRED_FIELD_MISSING),
        ]

    def test_null_counts_as_missing(self, blog_schema):
        result = validate_metadata(blog_schema, {"title": None, "publishDate": "2024-01-01"})
        assert _kinds(result) == [("title", ValidationErrorKind.REQUIRED_FIELD_MISSING)]

    def test_valid_item(self, blog_schema):
        result = validate_metadata(
            blog_schema,
            {
                "title": "Hello",
                "publishDate": "2024-01-01",
                "draft": False,
                "rating": 4.5,
                "tags": ["python", "async"],
            },
        )
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_yaml_date_objects_are_accepted(self, blog_schema):
        result = validate_metadata(blog_schema, {"title": "Hello", "publishDate": date(2024, 1, 1)})
        assert result.is_valid


class TestValueChecks:
    def test_type_mismatch(self, blog_schema):
        result = validate_metadata(
            blog_schema, {"title": 42, "publishDate": "2024-01-01", "draft": "yes"}
        )
        assert _kinds(result) == [
            ("title", ValidationErrorKind.TYPE_MISMATCH),
            ("draft", ValidationErrorKind.TYPE_MISMATCH),
        ]
        assert result.errors[0].expected_type == "string"
        assert result.errors[0].actual_value == 42

    def test_bool_is_not_a_number(self, blog_schema):
        result = validate_metadata(
            blog_schema, {"title": "x", "publishDate": "2024-01-01", "rating": True}
        )
        assert _kinds(result) == [("rating", ValidationErrorKind.TYPE_MISMATCH)]

    def test_numeric_bounds(self, blog_schema):
        result = validate_metadata(
            blog_schema, {"title": "x", "publishDate": "2024-01-01", "rating": 7}
        )
        assert _kinds(result) == [("rating", ValidationErrorKind.OUT_OF_RANGE)]
        assert "greater than maximum 5" in result.errors[0].message

    def test_length_bounds(self, blog_schema):
        result = validate_metadata(blog_schema, {"title": "", "publishDate": "2024-01-01"})
        assert _kinds(result) == [("title", ValidationErrorKind.OUT_OF_RANGE)]

    def test_bad_date(self, blog_schema):
        result = validate_metadata(blog_schema, {"title": "x", "publishDate": "last tuesday"})
        assert _kinds(result) == [("publishDate", ValidationErrorKind.BAD_FORMAT)]

    def test_pattern_then_length_order(self):
        schema = parse_collection_schema(
            {"properties": {"code": {"type": "string", "pattern": "^[A-Z]+$", "maxLength": 3}}}
        )
        result = validate_metadata(schema, {"code": "abcd"})
        assert [e.kind for e in result.errors] == [
            ValidationErrorKind.PATTERN_MISMATCH,
            ValidationErrorKind.OUT_OF_RANGE,
        ]

    def test_enum(self):
        schema = parse_collection_schema(
            {"properties": {"status": {"type": "string", "enum": ["draft", "published"]}}}
        )
        assert validate_metadata(schema, {"status": "published"}).is_valid
        result = validate_metadata(schema, {"status": "archived"})
        assert _kinds(result) == [("status", ValidationErrorKind.INVALID_ENUM_VALUE)]

    def test_integer(self):
        schema = parse_collection_schema({"properties": {"count": {"type": "integer"}}})
        assert validate_metadata(schema, {"count": 3}).is_valid
        assert not validate_metadata(schema, {"count": 3.5}).is_valid

    @pytest.mark.parametrize(
        "fmt, good, bad",
        [
            ("email", "jane@example.com", "jane.example.com"),
            ("uri", "https://example.com/a", "not a uri"),
            ("uuid", "12345678-1234-5678-1234-567812345678", "1234"),
        ],
    )
    def test_string_formats(self, fmt, good, bad):
        schema = parse_collection_schema({"properties": {"v": {"type": "string", "format": fmt}}})
        assert validate_metadata(schema, {"v": good}).is_valid
        result = validate_metadata(schema, {"v": bad})
        assert _kinds(result) == [("v", ValidationErrorKind.BAD_FORMAT)]


class TestArrays:
    def test_element_errors_use_indexed_paths(self, blog_schema):
        result = validate_metadata(
            blog_schema,
            {"title": "x", "publishDate": "2024-01-01", "tags": ["ok", 3, "fine", None]},
        )
        assert _kinds(result) == [
            ("tags[1]", ValidationErrorKind.TYPE_MISMATCH),
            ("tags[3]", ValidationErrorKind.TYPE_MISMATCH),
        ]

    def test_array_must_be_a_sequence(self, blog_schema):
        result = validate_metadata(
            blog_schema, {"title": "x", "publishDate": "2024-01-01", "tags": "python"}
        )
        assert _kinds(result) == [("tags", ValidationErrorKind.TYPE_MISMATCH)]

    def test_nested_arrays(self):
        schema = parse_collection_schema(
            {
                "properties": {
                    "matrix": {
                        "type": "array",
                        "items": {"type": "array", "items": {"type": "number", "minimum": 0}},
                    }
                }
            }
        )
        result = validate_metadata(schema, {"matrix": [[1, 2], [3, -1]]})
        assert _kinds(result) == [("matrix[1][1]", ValidationErrorKind.OUT_OF_RANGE)]


class TestUnknownFields:
    def test_unknown_field_is_a_warning_by_default(self, blog_schema):
        metadata = {"title": "x", "publishDate": "2024-01-01", "mood": "happy"}
        result = validate_metadata(blog_schema, metadata)

        assert result.is_valid
        assert [(w.field, w.kind) for w in result.warnings] == [
            ("mood", ValidationWarningKind.UNKNOWN_FIELD)
        ]
        # The value is preserved, never dropped
        assert metadata["mood"] == "happy"

    def test_unknown_field_is_an_error_when_forbidden(self):
        schema = parse_collection_schema(
            {"properties": {"title": {"type": "string"}}, "additionalProperties": False}
        )
        result = validate_metadata(schema, {"title": "x", "mood": "happy"})
        assert _kinds(result) == [("mood", ValidationErrorKind.UNKNOWN_FIELD)]

    def test_slug_is_not_reported(self, blog_schema):
        result = validate_metadata(
            blog_schema, {"title": "x", "publishDate": "2024-01-01", "slug": "custom"}
        )
        assert result.is_valid
        assert result.warnings == []


class TestValidityInvariant:
    """A result is invalid exactly when it carries at least one error."""

    @pytest.mark.parametrize(
        "metadata",
        [
            {},
            {"title": "x"},
            {"title": "x", "publishDate": "2024-01-01"},
            {"title": "x", "publishDate": "2024-01-01", "extra": 1},
            {"title": 1, "publishDate": 2, "tags": [1, 2]},
            {"title": "x", "publishDate": "2024-13-45", "rating": -1},
        ],
    )
    def test_is_valid_iff_no_errors(self, blog_schema, metadata):
        result = validate_metadata(blog_schema, metadata)
        assert result.is_valid == (len(result.errors) == 0)

    def test_to_dict(self, blog_schema):
        data = validate_metadata(blog_schema, {"title": "x"}).to_dict()
        assert data["is_valid"] is False
        assert data["errors"][0]["kind"] == "required-field-missing"
        assert data["errors"][0]["field"] == "publishDate"
