"""fluentrest - fluent HTTP request building and response validation for test suites.

    from fluentrest import fluent_rest

    (
        fluent_rest(base_url="https://api.example.com")
        .given_header("Accept", "application/json")
        .when_get("/users/1")
        .then_expect_status(200)
        .then_expect_body("$.id", 1)
    )
"""

from __future__ import annotations

from typing import Any

import httpx

from fluentrest.assertions import (
    expect_body,
    expect_body_contains,
    expect_header,
    expect_status,
    extract,
    validate_body,
)
from fluentrest.builder import RequestBuilder
from fluentrest.config import (
    configure_defaults,
    current_defaults,
    load_config_file,
    reset_defaults,
    resolve_config,
)
from fluentrest.errors import (
    AggregateAssertionFailure,
    AssertionFailure,
    ConfigError,
    FluentRestError,
    InvalidProxyConfig,
    InvalidProxyUrl,
    NoResponseError,
    RequestFailedError,
)
from fluentrest.models import CapturedResponse, EffectiveConfig, LogLevel
from fluentrest.validator import ResponseValidator

__all__ = [
    "AggregateAssertionFailure",
    "AssertionFailure",
    "CapturedResponse",
    "ConfigError",
    "EffectiveConfig",
    "FluentRestError",
    "InvalidProxyConfig",
    "InvalidProxyUrl",
    "LogLevel",
    "NoResponseError",
    "RequestBuilder",
    "RequestFailedError",
    "ResponseValidator",
    "configure_defaults",
    "current_defaults",
    "expect_body",
    "expect_body_contains",
    "expect_header",
    "expect_status",
    "extract",
    "fluent_rest",
    "load_config_file",
    "reset_defaults",
    "resolve_config",
    "validate_body",
]


def fluent_rest(transport: httpx.BaseTransport | None = None, **overrides: Any) -> RequestBuilder:
    """Start a request pipeline from the current defaults plus overrides."""
    return RequestBuilder(overrides, transport=transport)
