"""Pytest configuration and fixtures for fluentrest tests.

This file provides:
- make_captured_response: CapturedResponse factory with sensible defaults
- RecordingTransport / mock_transport: in-process httpx transports, so no
  test touches the network
- An autouse fixture isolating the process-wide defaults registry and the
  RA_* environment variables
"""

from __future__ import annotations

from typing import Any, Callable, Generator

import httpx
import pytest

from fluentrest.config import environment_defaults, reset_defaults
from fluentrest.models import CapturedResponse

RA_ENV_VARS = ("RA_TIMEOUT", "RA_LOG_LEVEL", "RA_LOG_FILE", "RA_BASE_URL", "RA_PROXY")


def make_captured_response(
    status_code: int = 200,
    headers: dict[str, str] | None = None,
    body: Any = None,
    status_text: str = "OK",
    elapsed_ms: float = 10.0,
) -> CapturedResponse:
    """Create a CapturedResponse for testing assertions.

    Prefer this over constructing CapturedResponse directly - it provides
    sensible defaults and documents which fields are typically varied in tests.
    """
    return CapturedResponse(
        status_code=status_code,
        status_text=status_text,
        headers={key.lower(): value for key, value in (headers or {}).items()},
        body=body,
        elapsed_ms=elapsed_ms,
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served, in order."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


def mock_transport(
    status_code: int = 200,
    json_body: Any = None,
    content: bytes = b"",
    headers: dict[str, str] | list[tuple[str, str]] | None = None,
    error: Exception | None = None,
) -> RecordingTransport:
    """Transport answering every request with one canned response (or error)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if error is not None:
            raise error
        if json_body is not None:
            return httpx.Response(status_code, json=json_body, headers=headers)
        return httpx.Response(status_code, content=content, headers=headers)

    return RecordingTransport(handler)


@pytest.fixture(autouse=True)
def isolated_defaults(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Every test starts from compiled-in defaults with no RA_* variables."""
    for name in RA_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    environment_defaults.cache_clear()
    reset_defaults()
    yield
    environment_defaults.cache_clear()
    reset_defaults()
