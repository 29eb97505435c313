"""Response checks and the assertions built on them.

Each check_* function inspects a captured response and returns a
CheckPassed or CheckFailed value without raising. The expect_* helpers (and
ResponseValidator's then_* methods) turn a CheckFailed into a logged,
formatted AssertionFailure.

The body-fragment check is textual: the body is serialized to compact
JSON and every expected pair must appear as the literal text
'"key":<compact JSON of value>'. Key order inside nested values and number
formatting (1 vs 1.0) therefore matter.
"""

from __future__ import annotations

import json
import os
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

from fluentrest.errors import (
    ERR_ASSERTION_BODY,
    ERR_ASSERTION_FRAGMENT,
    ERR_ASSERTION_HEADER,
    ERR_ASSERTION_STATUS,
    ERR_VALIDATION_SCHEMA,
    AssertionFailure,
    JSONPathError,
)
from fluentrest.jsonpath import PathEvaluator, evaluate, first_match
from fluentrest.logger import format_error, log_error, log_success
from fluentrest.models import CapturedResponse, LogLevel
from fluentrest.schema_validator import SchemaCheck, validate_document

_PACKAGE_PREFIX = str(Path(__file__).resolve().parent) + os.sep

# Log labels per error code
_ERROR_LABELS = {
    ERR_ASSERTION_STATUS: "Status Assertion Error",
    ERR_ASSERTION_BODY: "Body Assertion Error",
    ERR_ASSERTION_HEADER: "Header Assertion Error",
    ERR_ASSERTION_FRAGMENT: "Body Fragment Assertion Error",
    ERR_VALIDATION_SCHEMA: "Schema Validation Error",
}


@dataclass(frozen=True)
class CheckPassed:
    """A satisfied expectation; message is the confirmation line."""

    message: str


@dataclass(frozen=True)
class CheckFailed:
    """A broken expectation.

    Attributes:
        code: Error code (ERR_ASSERTION_STATUS, ...).
        stage: Which assertion failed, e.g. "Status assertion failed".
        message: The mismatch, e.g. "Expected status 200, got 404".
        payload: Response context for the report (body, or headers).
    """

    code: str
    stage: str
    message: str
    payload: Any = None


CheckResult = Union[CheckPassed, CheckFailed]


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality that does not conflate booleans with numbers (True != 1)."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual is expected
    return actual == expected


def compact_json(value: Any) -> str:
    """Compact JSON text, the serialization used for fragment matching."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_text_default)


def _text_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


# =============================================================================
# Checks
# =============================================================================


def check_status(response: CapturedResponse, expected: int) -> CheckResult:
    if response.status_code != expected:
        return CheckFailed(
            code=ERR_ASSERTION_STATUS,
            stage="Status assertion failed",
            message=f"Expected status {expected}, got {response.status_code}",
            payload=response.body,
        )
    return CheckPassed(f"Status {expected} as expected.")


def check_body(
    response: CapturedResponse,
    path: str,
    expected: Any,
    evaluator: PathEvaluator = evaluate,
) -> CheckResult:
    """Pass iff path has exactly one match and it strictly equals expected."""
    try:
        matches = evaluator(path, response.body)
    except JSONPathError as e:
        return CheckFailed(
            code=ERR_ASSERTION_BODY,
            stage="Body assertion failed",
            message=str(e),
            payload=response.body,
        )

    if len(matches) != 1:
        found = "no match" if not matches else f"{len(matches)} matches"
        return CheckFailed(
            code=ERR_ASSERTION_BODY,
            stage="Body assertion failed",
            message=f"Expected value at '{path}' to be {expected!r}, got {found}",
            payload=response.body,
        )

    actual = matches[0]
    if not strict_equals(actual, expected):
        return CheckFailed(
            code=ERR_ASSERTION_BODY,
            stage="Body assertion failed",
            message=f"Expected value at '{path}' to be {expected!r}, got {actual!r}",
            payload=response.body,
        )
    return CheckPassed(f"Body value at '{path}' is {expected!r} as expected.")


def check_header(response: CapturedResponse, key: str, expected: str) -> CheckResult:
    actual = response.header(key)
    if actual != expected:
        return CheckFailed(
            code=ERR_ASSERTION_HEADER,
            stage="Header assertion failed",
            message=f"Expected header '{key}' to be '{expected}', got '{actual}'",
            payload=response.headers,
        )
    return CheckPassed(f"Header '{key}' is '{expected}' as expected.")


def check_body_contains(response: CapturedResponse, fragment: Mapping[str, Any]) -> CheckResult:
    body_text = compact_json(response.body)
    missing = [
        key
        for key, value in fragment.items()
        if f'"{key}":{compact_json(value)}' not in body_text
    ]
    if missing:
        return CheckFailed(
            code=ERR_ASSERTION_FRAGMENT,
            stage="Body fragment check failed",
            message=(
                f"Expected body to contain fragment: {compact_json(dict(fragment))} "
                f"(missing: {', '.join(str(key) for key in missing)})"
            ),
            payload=response.body,
        )
    return CheckPassed("Body contains expected fragment.")


def check_schema(
    response: CapturedResponse,
    schema: Any,
    validator: SchemaCheck = validate_document,
) -> CheckResult:
    error = validator(response.body, schema)
    if error:
        return CheckFailed(
            code=ERR_VALIDATION_SCHEMA,
            stage="Schema validation failed",
            message=f"Schema validation failed: {error}",
            payload=response.body,
        )
    return CheckPassed("Schema validation passed.")


# =============================================================================
# Raising
# =============================================================================


def caller_context(limit: int = 3) -> str:
    """Innermost frames outside this package, most recent first."""
    frames = [
        frame
        for frame in traceback.extract_stack()
        if not str(Path(frame.filename).resolve()).startswith(_PACKAGE_PREFIX)
    ]
    if not frames:
        return "  at <unknown>"
    return "\n".join(
        f"  at {frame.filename}:{frame.lineno} in {frame.name}"
        for frame in reversed(frames[-limit:])
    )


def build_failure(failed: CheckFailed) -> AssertionFailure:
    """Format a failed check into the exception raised to callers."""
    detail = f"{failed.message}\n{caller_context()}"
    formatted = format_error(failed.stage, detail, failed.payload, failed.code)
    return AssertionFailure(
        formatted,
        code=failed.code,
        stage=failed.stage,
        message=failed.message,
        payload=failed.payload,
    )


def enforce(
    result: CheckResult,
    log_level: LogLevel | str,
    log_to_file: bool,
    log_file_path: str | None = None,
) -> None:
    """Log a passed check, or log and raise a failed one."""
    if isinstance(result, CheckPassed):
        log_success(result.message, log_level)
        return

    failure = build_failure(result)
    label = _ERROR_LABELS.get(result.code, "Assertion Error")
    log_error(label, failure.formatted, log_to_file, log_file_path)
    raise failure


def expect_status(
    response: CapturedResponse,
    status: int,
    log_level: LogLevel | str = LogLevel.INFO,
    log_to_file: bool = False,
) -> None:
    enforce(check_status(response, status), log_level, log_to_file)


def expect_body(
    response: CapturedResponse,
    path: str,
    expected: Any,
    log_level: LogLevel | str = LogLevel.INFO,
    log_to_file: bool = False,
) -> None:
    enforce(check_body(response, path, expected), log_level, log_to_file)


def expect_header(
    response: CapturedResponse,
    key: str,
    value: str,
    log_level: LogLevel | str = LogLevel.INFO,
    log_to_file: bool = False,
) -> None:
    enforce(check_header(response, key, value), log_level, log_to_file)


def expect_body_contains(
    response: CapturedResponse,
    fragment: Mapping[str, Any],
    log_level: LogLevel | str = LogLevel.INFO,
    log_to_file: bool = False,
) -> None:
    enforce(check_body_contains(response, fragment), log_level, log_to_file)


def validate_body(
    response: CapturedResponse,
    schema: Any,
    log_level: LogLevel | str = LogLevel.INFO,
    log_to_file: bool = False,
) -> None:
    enforce(check_schema(response, schema), log_level, log_to_file)


def extract(response: CapturedResponse, path: str) -> Any:
    """First value matched by path in the response body, or None."""
    return first_match(path, response.body)
