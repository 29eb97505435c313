"""Unit tests for body schema validation.

Tests JSON Schema validation (draft selection, violation paths and
classification) and pydantic models used as schemas.
"""

from pydantic import BaseModel

from fluentrest.schema_validator import (
    SchemaViolation,
    find_violations,
    validate_document,
)


WIDGET_SCHEMA = {
    "type": "object",
    "required": ["id", "name"],
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string", "minLength": 1},
        "price": {"type": "number", "minimum": 0},
        "status": {"enum": ["active", "retired"]},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
}


class Widget(BaseModel):
    id: str
    price: float


# =============================================================================
# JSON Schema Validation
# =============================================================================


class TestJsonSchemaValidation:
    """Tests for JSON Schema mappings."""

    def test_valid_document(self):
        """Valid body produces no violations."""
        body = {"id": "w1", "name": "Widget", "price": 9.5, "tags": ["a"]}
        assert find_violations(body, WIDGET_SCHEMA) == []
        assert validate_document(body, WIDGET_SCHEMA) is None

    def test_extra_field(self):
        """additionalProperties: false reports extra fields."""
        violations = find_violations({"id": "w1", "name": "W", "color": "red"}, WIDGET_SCHEMA)
        assert [v.violation_type for v in violations] == ["extra_field"]

    def test_missing_required(self):
        violations = find_violations({"id": "w1"}, WIDGET_SCHEMA)
        assert violations[0].violation_type == "missing_required"
        assert violations[0].path == "$"

    def test_nested_path(self):
        """Violation paths point into arrays."""
        violations = find_violations({"id": "w1", "name": "W", "tags": ["a", 2]}, WIDGET_SCHEMA)
        assert violations[0].path == "$.tags[1]"
        assert violations[0].violation_type == "wrong_type"

    def test_classification(self):
        body = {"id": "w1", "name": "", "price": -1, "status": "lost"}
        types = sorted(v.violation_type for v in find_violations(body, WIDGET_SCHEMA))
        assert types == ["invalid_enum", "invalid_length", "out_of_range"]

    def test_joined_message(self):
        """validate_document joins every violation with '; '."""
        message = validate_document({"id": 1}, WIDGET_SCHEMA)
        assert "$.id: 1 is not of type 'string'" in message
        assert "; " in message

    def test_invalid_schema(self):
        """A malformed schema is reported as a violation, not raised."""
        violations = find_violations({}, {"type": "not-a-type"})
        assert violations[0].message.startswith("Schema validation error")

    def test_draft_from_schema_keyword(self):
        """$schema selects the draft (draft-04 exclusiveMinimum is boolean)."""
        schema = {
            "$schema": "http://json-schema.org/draft-04/schema#",
            "type": "number",
            "minimum": 0,
            "exclusiveMinimum": True,
        }
        assert validate_document(1, schema) is None
        assert validate_document(0, schema) is not None


# =============================================================================
# Pydantic Models as Schemas
# =============================================================================


class TestPydanticSchemas:
    def test_valid(self):
        assert validate_document({"id": "w1", "price": 1}, Widget) is None

    def test_invalid(self):
        violations = find_violations({"id": "w1", "price": "free"}, Widget)
        assert violations[0].path == "$.price"

    def test_unsupported_schema_type(self):
        violations = find_violations({}, 42)
        assert violations == [
            SchemaViolation(
                path="$", message="Unsupported schema type: int", violation_type="validation_error"
            )
        ]
