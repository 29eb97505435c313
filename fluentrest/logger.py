"""Level-gated logging to the console and an optional append-only file.

Console blocks are rendered with rich on stderr. File entries use the
format "\\n--- <label> ---\\n<pretty JSON>\\n". The same events go to the
standard "fluentrest" logger so applications can route them elsewhere.

Errors are always emitted regardless of the configured level: a failed
exchange or a failed assertion is always actionable.

File appends are serialized within one process. Entries written by
several processes to the same file may interleave between entries.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any

from pydantic import BaseModel
from rich.console import Console

from fluentrest.config import current_defaults
from fluentrest.models import CapturedResponse, LogLevel

LOGGER = logging.getLogger("fluentrest")
LOGGER.addHandler(logging.NullHandler())

_console = Console(stderr=True, highlight=False)
_file_lock = Lock()

_LEVEL_STYLES = {
    LogLevel.NONE: "magenta",
    LogLevel.DEBUG: "grey50",
    LogLevel.INFO: "cyan",
}


def should_log(current: LogLevel | str, required: LogLevel | str) -> bool:
    """True if the current level is at least as verbose as required."""
    return LogLevel(current).rank >= LogLevel(required).rank


def to_pretty_json(data: Any) -> str:
    """Indented JSON text; non-JSON values are rendered descriptively."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


def resolve_log_file_path(log_file_path: str | Path | None = None) -> Path:
    """Log file path resolved against the working directory.

    Builders pass the path from their own config; callers without one get
    the current defaults' path.
    """
    if log_file_path is None:
        log_file_path = current_defaults().log_file_path
    return Path.cwd() / log_file_path


def write_log_file(label: str, data: Any, log_file_path: str | Path | None = None) -> None:
    """Append one labeled entry to the log file, creating directories."""
    log_path = resolve_log_file_path(log_file_path)
    entry = f"\n--- {label} ---\n{to_pretty_json(data)}\n"
    with _file_lock:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(entry)


def log_block(
    label: str,
    data: Any,
    log_level: LogLevel | str,
    log_to_file: bool,
    required: LogLevel | str = LogLevel.INFO,
    log_file_path: str | Path | None = None,
) -> None:
    """Log a labeled payload if the current level permits it."""
    if not should_log(log_level, required):
        return

    required = LogLevel(required)
    _console.print(f"\n--- {label} ---", style=_LEVEL_STYLES[required], markup=False)
    _console.print(to_pretty_json(data), markup=False)
    LOGGER.log(
        logging.DEBUG if required is LogLevel.DEBUG else logging.INFO,
        "%s: %s",
        label,
        to_pretty_json(data),
    )

    if log_to_file:
        write_log_file(label, data, log_file_path)


def log_request(
    snapshot: dict[str, Any],
    log_level: LogLevel | str,
    log_to_file: bool,
    log_file_path: str | Path | None = None,
) -> None:
    """Log method, url and headers; body, timeout and base URL only at debug."""
    if not should_log(log_level, LogLevel.INFO):
        return

    request_log: dict[str, Any] = {
        "method": snapshot.get("method"),
        "url": snapshot.get("url"),
        "headers": snapshot.get("headers"),
    }
    if should_log(log_level, LogLevel.DEBUG):
        request_log.update(
            {
                "params": snapshot.get("params"),
                "data": snapshot.get("data"),
                "timeout": snapshot.get("timeout"),
                "base_url": snapshot.get("base_url"),
            }
        )

    log_block("Request", request_log, log_level, log_to_file, LogLevel.INFO, log_file_path)


def log_response(
    response: CapturedResponse,
    log_level: LogLevel | str,
    log_to_file: bool,
    log_file_path: str | Path | None = None,
) -> None:
    """Log status and body; headers and status text only at debug."""
    if not should_log(log_level, LogLevel.INFO):
        return

    response_log: dict[str, Any] = {
        "status": response.status_code,
        "data": response.body,
    }
    if should_log(log_level, LogLevel.DEBUG):
        response_log.update(
            {
                "headers": response.headers,
                "status_text": response.status_text,
                "elapsed_ms": response.elapsed_ms,
            }
        )

    log_block("Response", response_log, log_level, log_to_file, LogLevel.INFO, log_file_path)


def log_error(
    label: str,
    message: str,
    log_to_file: bool,
    log_file_path: str | Path | None = None,
) -> None:
    """Log an already formatted error message, whatever the level."""
    _console.print(f"\n--- {label} ---", style="bold red", markup=False)
    _console.print(message, style="red", markup=False)
    LOGGER.error("%s: %s", label, message)

    if log_to_file:
        write_log_file(label, {"message": message}, log_file_path)


def log_success(message: str, log_level: LogLevel | str) -> None:
    """One-line confirmation for a passed assertion (silent at level none)."""
    if LogLevel(log_level) is LogLevel.NONE:
        return
    _console.print(f"✔ {message}", style="green", markup=False)
    LOGGER.info(message)


def format_error(
    message: str,
    detail: str,
    response_body: Any = None,
    error_code: str | None = None,
) -> str:
    """Build the message raised by a failed assertion.

    Layout: "[CODE] message", then the mismatch detail with its context
    trace, then a pretty-printed response body when one is present.
    """
    code_prefix = f"[{error_code}] " if error_code else ""
    body_snippet = ""
    if response_body is not None and response_body != "" and response_body != b"":
        body_snippet = f"\nResponse Body:\n{to_pretty_json(response_body)}"
    return f"{code_prefix}{message}\n{detail}{body_snippet}"
