"""Executor - Sends one request and captures whatever comes back.

A send never raises for transport problems. Any status code (2xx through
5xx) is a Success outcome; DNS, connection, timeout and protocol failures
become a TransportFailure. Either way the caller gets a ResponseValidator.

Exactly one network call is made per send; there is no retry.
"""

from __future__ import annotations

import json
import time
from typing import Any

import httpx

from fluentrest.jsonpath import PathEvaluator, evaluate
from fluentrest.logger import log_error, log_request, log_response, to_pretty_json
from fluentrest.models import (
    BodyKind,
    CapturedResponse,
    LogLevel,
    Outcome,
    ProxyDirective,
    RequestSpec,
    Success,
    TransportFailure,
)
from fluentrest.proxy import transport_kwargs
from fluentrest.schema_validator import SchemaCheck, validate_document
from fluentrest.validator import ResponseValidator

# Friendly descriptions for transport failures, most specific class first
_TRANSPORT_MESSAGES: tuple[tuple[type[Exception], str], ...] = (
    (httpx.ConnectTimeout, "Connection timed out"),
    (httpx.ReadTimeout, "Timed out waiting for the response"),
    (httpx.WriteTimeout, "Timed out sending the request"),
    (httpx.PoolTimeout, "Timed out waiting for a free connection"),
    (httpx.ProxyError, "Proxy refused or failed the connection"),
    (httpx.ConnectError, "Connection refused (is the server or proxy running?)"),
    (httpx.ReadError, "Connection reset by peer"),
    (httpx.WriteError, "Broken pipe (connection closed by remote)"),
    (httpx.RemoteProtocolError, "Malformed response (protocol error)"),
    (httpx.UnsupportedProtocol, "Unsupported URL protocol"),
    (httpx.TooManyRedirects, "Too many redirects"),
    (httpx.DecodingError, "Received bad response from server"),
    (httpx.InvalidURL, "Invalid URL"),
)

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
)


def describe_transport_error(method: str, url: str, error: Exception) -> str:
    """Human-readable one-liner for a failed exchange."""
    friendly = str(error) or type(error).__name__
    for error_type, message in _TRANSPORT_MESSAGES:
        if isinstance(error, error_type):
            friendly = message
            break

    if isinstance(error, httpx.ConnectError) and any(
        marker in str(error).lower() for marker in _DNS_FAILURE_MARKERS
    ):
        friendly = "Domain not found (DNS lookup failed)"

    return f"[{method.upper()} {url}] failed: {friendly} ({type(error).__name__}: {error})"


def _sanitize_header_value(value: str) -> str:
    """Replace non-ASCII characters with '?'; HTTP header values are ASCII."""
    return value.encode("ascii", errors="replace").decode("ascii")


class RequestExecutor:
    """Performs one HTTP exchange for a frozen RequestSpec.

    Usage:
        executor = RequestExecutor(spec, LogLevel.INFO, log_to_file=False)
        validator = executor.send("GET", "/users/1")

    A custom httpx transport (e.g. httpx.MockTransport) may be injected. It
    stands in for the network and receives every request; the proxy
    directive is then recorded in the request config but not mounted.
    """

    def __init__(
        self,
        spec: RequestSpec,
        log_level: LogLevel | str = LogLevel.INFO,
        log_to_file: bool = False,
        transport: httpx.BaseTransport | None = None,
        path_evaluator: PathEvaluator = evaluate,
        schema_validator: SchemaCheck = validate_document,
        log_file_path: str | None = None,
    ) -> None:
        self._spec = spec.model_copy(deep=True)
        self._log_level = LogLevel(log_level)
        self._log_to_file = log_to_file
        self._log_file_path = log_file_path
        self._transport = transport
        self._path_evaluator = path_evaluator
        self._schema_validator = schema_validator

    def send(
        self,
        method: str,
        endpoint: str,
        proxy_override: ProxyDirective | None = None,
    ) -> ResponseValidator:
        """Send the request and wrap the outcome.

        Args:
            method: HTTP method (case-insensitive).
            endpoint: Path relative to the base URL, or an absolute URL.
            proxy_override: Directive that replaces the spec's own.

        Returns:
            ResponseValidator in Passing state (response received, any status)
            or Failed state (transport failure).
        """
        spec = self._spec.model_copy(deep=True)
        spec.method = method.upper()
        spec.url = endpoint
        if proxy_override is not None:
            spec.proxy = proxy_override

        log_request(spec.snapshot(), self._log_level, self._log_to_file, self._log_file_path)
        outcome = self.exchange(spec)

        if isinstance(outcome, Success):
            log_response(
                outcome.response, self._log_level, self._log_to_file, self._log_file_path
            )
        else:
            message = outcome.message
            if outcome.response is not None and outcome.response.body is not None:
                message = f"{message}\nResponse Body:\n{to_pretty_json(outcome.response.body)}"
            log_error("Request Failed", message, self._log_to_file, self._log_file_path)

        return ResponseValidator(
            outcome,
            request_config=self.request_config(spec),
            log_level=self._log_level,
            log_to_file=self._log_to_file,
            path_evaluator=self._path_evaluator,
            schema_validator=self._schema_validator,
            log_file_path=self._log_file_path,
        )

    def exchange(self, spec: RequestSpec) -> Outcome:
        """Issue the single network call for spec and normalize the result."""
        method = spec.method or "GET"
        url = spec.url or ""

        try:
            with httpx.Client(**self._build_client_kwargs(spec)) as client:
                start_time = time.perf_counter()
                http_response = client.request(
                    method=method,
                    url=url,
                    params=spec.params or None,
                    headers=self._build_headers(spec) or None,
                    content=self._build_content(spec),
                )
                elapsed_ms = (time.perf_counter() - start_time) * 1000
        except (httpx.RequestError, httpx.InvalidURL) as e:
            return TransportFailure(
                error=e,
                message=describe_transport_error(method, url, e),
            )

        return Success(response=self.convert_response(http_response, elapsed_ms))

    def _build_client_kwargs(self, spec: RequestSpec) -> dict[str, Any]:
        """Build kwargs for httpx.Client: base URL, timeout and proxy directive.

        Environment proxies are ignored; only the directive decides. An
        injected transport takes every request, so no proxy is mounted.
        """
        kwargs: dict[str, Any] = {
            "base_url": spec.base_url,
            "timeout": spec.timeout / 1000,
            "trust_env": False,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        else:
            kwargs.update(transport_kwargs(spec.proxy))
        return kwargs

    @staticmethod
    def _build_headers(spec: RequestSpec) -> dict[str, str]:
        return {key: _sanitize_header_value(str(value)) for key, value in spec.headers.items()}

    @staticmethod
    def _build_content(spec: RequestSpec) -> bytes | None:
        """Bytes on the wire for the encoded body."""
        body = spec.body
        if body is None or body.content is None:
            return None

        content = body.content
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode("utf-8")
        if body.kind is BodyKind.RAW and isinstance(content, (dict, list)):
            return json.dumps(content, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        return str(content).encode("utf-8")

    @staticmethod
    def convert_response(response: httpx.Response, elapsed_ms: float) -> CapturedResponse:
        """Convert an httpx Response into a CapturedResponse.

        Body by content type:
            JSON            -> parsed value (raw text if it does not parse)
            text/*, xml     -> str
            everything else -> bytes
            empty           -> None
        """
        headers: dict[str, str] = {}
        for key, value in response.headers.multi_items():
            key_lower = key.lower()
            if key_lower in headers:
                headers[key_lower] = f"{headers[key_lower]}, {value}"
            else:
                headers[key_lower] = value

        content_type = headers.get("content-type", "").lower()
        body: Any = None

        if response.content:
            if "json" in content_type:
                try:
                    body = response.json()
                except ValueError:
                    # Not valid JSON despite content-type
                    body = response.text
            elif content_type.startswith("text/") or "xml" in content_type:
                body = response.text
            else:
                body = response.content

        return CapturedResponse(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=headers,
            body=body,
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    def request_config(spec: RequestSpec) -> dict[str, Any]:
        """Read-only view of what was sent, including the proxy directive."""
        config = spec.snapshot()
        config["proxy"] = spec.proxy.model_dump() if spec.proxy is not None else None
        return config
