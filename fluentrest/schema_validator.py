"""Schema Validator - Validates response bodies against a schema.

Two schema forms are accepted:
- a JSON Schema mapping, validated with jsonschema (the draft is picked from
  "$schema", defaulting to Draft 2020-12)
- a pydantic model class, validated with model_validate()

The validator is a pluggable capability: anything callable as
``validate(document, schema) -> str | None`` (None meaning valid) can be
handed to a ResponseValidator instead of validate_document.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from jsonschema import Draft202012Validator, ValidationError as JsonSchemaValidationError
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

SchemaCheck = Callable[[Any, Any], str | None]


@dataclass
class SchemaViolation:
    """A single schema violation in a response body.

    Attributes:
        path: JSONPath to the violating field (e.g., "$.items[0].id")
        message: Human-readable description of the violation
        violation_type: Type of violation (wrong_type, missing_required, etc.)
    """

    path: str
    message: str
    violation_type: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def find_violations(document: Any, schema: Any) -> list[SchemaViolation]:
    """Validate document against schema and list every violation."""
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return _pydantic_violations(document, schema)

    if not isinstance(schema, Mapping):
        return [
            SchemaViolation(
                path="$",
                message=f"Unsupported schema type: {type(schema).__name__}",
                violation_type="validation_error",
            )
        ]

    validator_cls = validator_for(schema, default=Draft202012Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as e:
        return [
            SchemaViolation(
                path="$",
                message=f"Schema validation error: {e.message}",
                violation_type="validation_error",
            )
        ]

    validator = validator_cls(schema)
    return [
        SchemaViolation(
            path=_error_path_to_jsonpath(error.absolute_path),
            message=error.message,
            violation_type=_classify_validation_error(error),
        )
        for error in validator.iter_errors(document)
    ]


def validate_document(document: Any, schema: Any) -> str | None:
    """Default schema capability: None if valid, else a joined error message."""
    violations = find_violations(document, schema)
    if not violations:
        return None
    return "; ".join(str(violation) for violation in violations)


def _pydantic_violations(document: Any, model: type[BaseModel]) -> list[SchemaViolation]:
    try:
        model.model_validate(document)
    except PydanticValidationError as e:
        return [
            SchemaViolation(
                path=_error_path_to_jsonpath(error["loc"]),
                message=error["msg"],
                violation_type=error["type"],
            )
            for error in e.errors()
        ]
    return []


def _error_path_to_jsonpath(path: Iterable[Any]) -> str:
    """Convert an error location to JSONPath format (e.g., "$.data.items[0].id")."""
    parts = ["$"]
    for segment in path:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        else:
            parts.append(f".{segment}")
    return "".join(parts)


def _classify_validation_error(error: JsonSchemaValidationError) -> str:
    """Classify a jsonschema error by the keyword that failed."""
    validator = error.validator

    if validator == "additionalProperties":
        return "extra_field"
    elif validator == "type":
        return "wrong_type"
    elif validator == "required":
        return "missing_required"
    elif validator == "enum":
        return "invalid_enum"
    elif validator in ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"):
        return "out_of_range"
    elif validator in ("minLength", "maxLength"):
        return "invalid_length"
    elif validator == "pattern":
        return "pattern_mismatch"
    elif validator == "format":
        return "invalid_format"
    else:
        return "validation_error"
