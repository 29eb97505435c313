"""Exception hierarchy and error codes for fluentrest.

Configuration errors are raised synchronously while a request is being
built. Transport failures are never raised from a send; they are captured
in the outcome. Assertion failures always raise, carrying an error code
that is also embedded in the message text.
"""

from __future__ import annotations

from typing import Any

# Error codes surfaced in formatted assertion messages
ERR_ASSERTION_STATUS = "ERR_ASSERTION_STATUS"
ERR_ASSERTION_BODY = "ERR_ASSERTION_BODY"
ERR_ASSERTION_HEADER = "ERR_ASSERTION_HEADER"
ERR_ASSERTION_FRAGMENT = "ERR_ASSERTION_FRAGMENT"
ERR_VALIDATION_SCHEMA = "ERR_VALIDATION_SCHEMA"
ERR_CUSTOM_FLOW = "ERR_CUSTOM_FLOW"


class FluentRestError(Exception):
    """Base class for all fluentrest errors."""


class ConfigError(FluentRestError):
    """Raised when configuration values or files are invalid."""


class ProxyConfigError(ConfigError):
    """Base class for proxy specification errors."""


class InvalidProxyUrl(ProxyConfigError):
    """Proxy URL does not start with http:// or https://."""


class InvalidProxyConfig(ProxyConfigError):
    """Structured proxy is missing host or port, or has a malformed field."""


class JSONPathError(FluentRestError):
    """Invalid JSONPath expression."""


class NoResponseError(FluentRestError):
    """A response-only operation was attempted on a failed exchange."""


class AssertionFailure(FluentRestError, AssertionError):
    """A single expectation mismatch.

    ``str(failure)`` is the fully formatted message (error code prefix,
    context trace and response body snippet). The structured parts stay
    available as attributes for callers that prefer not to parse text.
    """

    def __init__(
        self,
        formatted: str,
        *,
        code: str,
        stage: str,
        message: str,
        payload: Any = None,
    ) -> None:
        super().__init__(formatted)
        self.formatted = formatted
        self.code = code
        self.stage = stage
        self.message = message
        self.payload = payload


class AggregateAssertionFailure(AssertionFailure):
    """Several failures collected by a soft-fail assertion run."""

    def __init__(self, failures: list[BaseException]) -> None:
        self.failures = list(failures)
        combined = "\n".join(str(failure) for failure in self.failures)
        super().__init__(
            combined,
            code="ERR_ASSERTION_AGGREGATE",
            stage="Aggregated assertions",
            message=f"{len(self.failures)} assertion(s) failed",
            payload=None,
        )


class RequestFailedError(AssertionFailure):
    """Synthesized when a custom flow runs against a failed exchange."""
