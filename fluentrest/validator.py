"""Response validation - assertions over the outcome of one exchange.

A ResponseValidator is in one of two states:

    Passing  a response was received (any status code)
    Failed   the exchange failed before a response arrived

Assertions and extraction need a response; in the Failed state they raise
NoResponseError. was_failure(), get_error_body() and get_request_config()
work in both states.

Every then_* method returns the validator for chaining. run_assertions()
runs a batch of assertion callables without stopping at the first failure
and raises one AggregateAssertionFailure listing all of them.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Iterable, Mapping

from fluentrest.assertions import (
    CheckResult,
    caller_context,
    check_body,
    check_body_contains,
    check_header,
    check_schema,
    check_status,
    enforce,
)
from fluentrest.errors import (
    ERR_CUSTOM_FLOW,
    AggregateAssertionFailure,
    NoResponseError,
    RequestFailedError,
)
from fluentrest.jsonpath import PathEvaluator, evaluate, first_match
from fluentrest.logger import format_error, log_error
from fluentrest.models import CapturedResponse, LogLevel, Outcome, Success, TransportFailure
from fluentrest.schema_validator import SchemaCheck, validate_document

Assertion = Callable[["ResponseValidator"], Any]


class ResponseValidator:
    """Wraps one Outcome and exposes assertions over it."""

    def __init__(
        self,
        outcome: Outcome,
        request_config: Mapping[str, Any] | None = None,
        log_level: LogLevel | str = LogLevel.INFO,
        log_to_file: bool = False,
        path_evaluator: PathEvaluator = evaluate,
        schema_validator: SchemaCheck = validate_document,
        log_file_path: str | None = None,
    ) -> None:
        self._outcome = outcome
        self._request_config = dict(request_config or {})
        self._log_level = LogLevel(log_level)
        self._log_to_file = log_to_file
        self._log_file_path = log_file_path
        self._path_evaluator = path_evaluator
        self._schema_validator = schema_validator

    # -------------------------------------------------------------------------
    # Inspection (valid in both states)
    # -------------------------------------------------------------------------

    @property
    def outcome(self) -> Outcome:
        return self._outcome

    @property
    def error(self) -> BaseException | None:
        """The transport error, or None if a response was received."""
        if isinstance(self._outcome, TransportFailure):
            return self._outcome.error
        return None

    def was_failure(self) -> bool:
        """True if the exchange failed before a response arrived."""
        return isinstance(self._outcome, TransportFailure)

    def get_error_body(self) -> Any:
        """Body of the partial response attached to a failure, if any."""
        if isinstance(self._outcome, TransportFailure) and self._outcome.response is not None:
            return self._outcome.response.body
        return None

    def get_request_config(self) -> dict[str, Any]:
        """Copy of the request configuration that was sent."""
        return copy.deepcopy(self._request_config)

    def get_response(self) -> CapturedResponse:
        return self._require_response("inspect")

    # -------------------------------------------------------------------------
    # Assertions (Passing state only)
    # -------------------------------------------------------------------------

    def then_expect_status(self, status: int) -> ResponseValidator:
        response = self._require_response("validate status")
        self._enforce(check_status(response, status))
        return self

    def then_expect_body(self, path: str, expected: Any) -> ResponseValidator:
        """Assert the single value matched by a JSONPath equals expected."""
        response = self._require_response("validate body")
        self._enforce(check_body(response, path, expected, self._path_evaluator))
        return self

    def then_expect_header(self, key: str, value: str) -> ResponseValidator:
        response = self._require_response("validate header")
        self._enforce(check_header(response, key, value))
        return self

    def then_expect_body_contains(self, fragment: Mapping[str, Any]) -> ResponseValidator:
        response = self._require_response("validate body")
        self._enforce(check_body_contains(response, fragment))
        return self

    def then_validate_body(self, schema: Any) -> ResponseValidator:
        """Validate the body against a JSON Schema mapping or a pydantic model."""
        response = self._require_response("validate schema")
        self._enforce(check_schema(response, schema, self._schema_validator))
        return self

    def then_extract(self, path: str) -> Any:
        """First value matched by a JSONPath, or None."""
        response = self._require_response("extract from")
        return first_match(path, response.body, self._path_evaluator)

    def then_json(self) -> Any:
        """The parsed response body."""
        return self._require_response("parse JSON").body

    # -------------------------------------------------------------------------
    # Aggregation and custom flows
    # -------------------------------------------------------------------------

    def run_assertions(self, assertions: Iterable[Assertion]) -> ResponseValidator:
        """Run every assertion, then raise once if any of them failed.

        Each callable receives this validator. Failures are collected in
        call order; the combined message joins them with newlines.
        """
        failures: list[Exception] = []
        for assertion in assertions:
            try:
                assertion(self)
            except Exception as e:
                failures.append(e)

        if failures:
            raise AggregateAssertionFailure(failures)
        return self

    def catch_and_log(
        self,
        fn: Assertion | None = None,
        on_error: Callable[[RequestFailedError], Any] | None = None,
    ) -> ResponseValidator:
        """Run a custom check with failure context.

        Failed state: build a RequestFailedError describing the transport
        failure and hand it to on_error, or raise it if no handler is given.

        Passing state: call fn(validator); anything it raises is logged with
        the response body and re-raised.
        """
        if isinstance(self._outcome, TransportFailure):
            error = self._request_failed_error(self._outcome)
            if on_error is None:
                raise error from self._outcome.error
            on_error(error)
            return self

        if fn is None:
            return self

        try:
            fn(self)
        except Exception as e:
            detail = f"{type(e).__name__}: {e}\n{caller_context()}"
            formatted = format_error(
                "Custom flow failed", detail, self._outcome.response.body, ERR_CUSTOM_FLOW
            )
            log_error("Caught Error", formatted, self._log_to_file, self._log_file_path)
            raise
        return self

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _enforce(self, result: CheckResult) -> None:
        enforce(result, self._log_level, self._log_to_file, self._log_file_path)

    def _require_response(self, action: str) -> CapturedResponse:
        if isinstance(self._outcome, Success):
            return self._outcome.response
        raise NoResponseError(
            f"No response available to {action}: {self._outcome.message}"
        )

    @staticmethod
    def _request_failed_error(failure: TransportFailure) -> RequestFailedError:
        body = failure.response.body if failure.response is not None else None
        if not isinstance(body, (dict, list)):
            body = None
        formatted = format_error("Request failed", failure.message, body, ERR_CUSTOM_FLOW)
        error = RequestFailedError(
            formatted,
            code=ERR_CUSTOM_FLOW,
            stage="Request failed",
            message=failure.message,
            payload=body,
        )
        error.__cause__ = failure.error
        return error
