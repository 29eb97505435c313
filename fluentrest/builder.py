"""Request builder - accumulates request state through chained calls.

Each given_*/set_* method mutates this builder's RequestSpec in place and
returns the same builder, so chained calls alias one object:

    builder = fluent_rest().given_header("X-Trace", "1")
    other = builder.given_header("X-Trace", "2")   # same object; "1" is gone

Use copy() to branch a builder. send_and_expect() always works on a copy and
never mutates the receiver.

Proxy precedence, highest first: an explicit set_proxy() call, then the
effective config's proxy at construction time, then no proxy.
clear_proxy() removes whichever directive is active.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Mapping

import httpx

from fluentrest.body import JSON_CONTENT_TYPE, encode_body
from fluentrest.config import resolve_config
from fluentrest.errors import ConfigError
from fluentrest.executor import RequestExecutor
from fluentrest.jsonpath import PathEvaluator, evaluate
from fluentrest.logger import log_block
from fluentrest.models import BodyKind, EffectiveConfig, LogLevel, ProxyDirective, RequestSpec
from fluentrest.proxy import resolve_directive
from fluentrest.schema_validator import SchemaCheck, validate_document
from fluentrest.validator import ResponseValidator

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

# Keys accepted by send_and_expect's overrides mapping
SEND_OVERRIDE_KEYS = frozenset({"headers", "params", "body", "content_type"})


class RequestBuilder:
    """Fluent builder for one request pipeline.

    Args:
        overrides: Per-instance config values (timeout, log_level,
                   log_file_path, base_url, proxy).
        config: Base configuration. Defaults to the process-wide defaults at
                construction time; later configure_defaults() calls do not
                affect this builder.
        transport: httpx transport used for sends (e.g. httpx.MockTransport).
                   It receives every request, so a proxy directive is
                   recorded in the request config but not mounted.
        path_evaluator: JSONPath capability handed to validators.
        schema_validator: Schema capability handed to validators.
    """

    def __init__(
        self,
        overrides: Mapping[str, Any] | None = None,
        config: EffectiveConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        path_evaluator: PathEvaluator = evaluate,
        schema_validator: SchemaCheck = validate_document,
    ) -> None:
        self._config = resolve_config(overrides, base=config)
        self._spec = RequestSpec(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            proxy=resolve_directive(self._config.proxy),
        )
        self._log_level = self._config.log_level
        self._log_to_file = False
        self._transport = transport
        self._path_evaluator = path_evaluator
        self._schema_validator = schema_validator

    # -------------------------------------------------------------------------
    # Given phase
    # -------------------------------------------------------------------------

    def given_header(self, key: str, value: str) -> RequestBuilder:
        """Set a header; replaces any existing value for the key, whatever its case."""
        self._set_header(key, value)
        return self

    def given_headers(self, headers: Mapping[str, str]) -> RequestBuilder:
        for key, value in headers.items():
            self._set_header(key, value)
        return self

    def given_query_param(self, key: str, value: Any) -> RequestBuilder:
        self._spec.params[key] = value
        return self

    def given_query_params(self, params: Mapping[str, Any]) -> RequestBuilder:
        self._spec.params.update(params)
        return self

    def given_body(self, payload: Any, content_type: str = JSON_CONTENT_TYPE) -> RequestBuilder:
        """Encode payload for content_type and attach it.

        Content-Type is set to content_type, except for multipart bodies,
        which carry their own header with the generated boundary.
        """
        encoded = encode_body(payload, content_type)
        if encoded.kind is BodyKind.MULTIPART:
            for key, value in encoded.headers.items():
                self._set_header(key, value)
        else:
            self._set_header("Content-Type", content_type)
        self._spec.body = encoded
        return self

    def set_proxy(self, proxy: Any) -> RequestBuilder:
        """Install a proxy directive from a URL string or {host, port, ...} mapping.

        The value is validated before anything changes, so a rejected value
        leaves the current directive in place. None clears the directive.

        Raises:
            InvalidProxyUrl: String without an http:// or https:// scheme.
            InvalidProxyConfig: Mapping missing host or port.
        """
        self._spec.proxy = resolve_directive(proxy)
        return self

    def clear_proxy(self) -> RequestBuilder:
        self._spec.proxy = None
        return self

    def set_base_url(self, base_url: str) -> RequestBuilder:
        self._spec.base_url = base_url
        return self

    def set_timeout(self, timeout_ms: int) -> RequestBuilder:
        """Set the per-request timeout in milliseconds."""
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ConfigError(f"Timeout must be a positive integer (ms), got {timeout_ms!r}")
        self._spec.timeout = timeout_ms
        return self

    def set_log_level(self, log_level: LogLevel | str) -> RequestBuilder:
        try:
            self._log_level = LogLevel(log_level)
        except ValueError as e:
            raise ConfigError(
                f"Invalid log level {log_level!r}. Must be one of: none, info, debug"
            ) from e
        return self

    def enable_file_logging(self, enable: bool = True) -> RequestBuilder:
        self._log_to_file = enable
        return self

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def proxy_directive(self) -> ProxyDirective | None:
        """The active proxy directive, if any."""
        return self._spec.proxy

    def get_snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._spec.snapshot())

    def get_config(self) -> dict[str, Any]:
        """Snapshot plus the active proxy directive."""
        return copy.deepcopy(RequestExecutor.request_config(self._spec))

    def get_log_level(self) -> LogLevel:
        return self._log_level

    def should_log_to_file(self) -> bool:
        return self._log_to_file

    def debug(self) -> RequestBuilder:
        """Print the current request snapshot, whatever the log level."""
        log_block(
            "Request Snapshot",
            self.get_snapshot(),
            self._log_level,
            self._log_to_file,
            required=LogLevel.NONE,
            log_file_path=self._config.log_file_path,
        )
        return self

    def copy(self) -> RequestBuilder:
        """Independent builder with a deep copy of the request state."""
        clone = copy.copy(self)
        clone._spec = self._spec.model_copy(deep=True)
        return clone

    # -------------------------------------------------------------------------
    # When phase
    # -------------------------------------------------------------------------

    def when_get(self, endpoint: str) -> ResponseValidator:
        return self._send("GET", endpoint)

    def when_post(self, endpoint: str) -> ResponseValidator:
        return self._send("POST", endpoint)

    def when_put(self, endpoint: str) -> ResponseValidator:
        return self._send("PUT", endpoint)

    def when_patch(self, endpoint: str) -> ResponseValidator:
        return self._send("PATCH", endpoint)

    def when_delete(self, endpoint: str) -> ResponseValidator:
        return self._send("DELETE", endpoint)

    def when_head(self, endpoint: str) -> ResponseValidator:
        return self._send("HEAD", endpoint)

    def when_options(self, endpoint: str) -> ResponseValidator:
        return self._send("OPTIONS", endpoint)

    def send_and_expect(
        self,
        method: str,
        endpoint: str,
        assert_fn: Callable[[ResponseValidator], Any],
        overrides: Mapping[str, Any] | None = None,
    ) -> ResponseValidator:
        """Send from a copy of this builder, then run assert_fn on the result.

        overrides may carry "headers", "params", "body" and "content_type";
        they apply to the copy only. Whatever assert_fn raises propagates.
        """
        overrides = dict(overrides or {})
        unknown = set(overrides) - SEND_OVERRIDE_KEYS
        if unknown:
            raise ConfigError(
                f"Unknown override key(s): {', '.join(sorted(unknown))}. "
                f"Allowed: {', '.join(sorted(SEND_OVERRIDE_KEYS))}"
            )

        derived = self.copy()
        derived.given_headers(overrides.get("headers") or {})
        derived.given_query_params(overrides.get("params") or {})
        if overrides.get("body") is not None:
            derived.given_body(
                overrides["body"], overrides.get("content_type") or JSON_CONTENT_TYPE
            )

        validator = derived._send(method, endpoint)
        assert_fn(validator)
        return validator

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _set_header(self, key: str, value: str) -> None:
        key_lower = key.lower()
        for existing in [k for k in self._spec.headers if k.lower() == key_lower]:
            del self._spec.headers[existing]
        self._spec.headers[key] = value

    def _send(self, method: str, endpoint: str) -> ResponseValidator:
        method = method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(
                f"Unsupported HTTP method {method!r}. "
                f"Must be one of: {', '.join(sorted(HTTP_METHODS))}"
            )
        executor = RequestExecutor(
            self._spec,
            log_level=self._log_level,
            log_to_file=self._log_to_file,
            transport=self._transport,
            path_evaluator=self._path_evaluator,
            schema_validator=self._schema_validator,
            log_file_path=self._config.log_file_path,
        )
        return executor.send(method, endpoint)
