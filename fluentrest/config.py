"""Config resolution - merges defaults, registry overrides and per-instance overrides.

Resolution order, lowest priority first:

    compiled-in defaults
    environment variables (read once per process, memoized)
    process-wide registry updates (configure_defaults)
    per-builder override mapping

Merging is shallow and key-by-key; keys that are absent (or None) fall
through to the layer below.

The registry is shared mutable state. configure_defaults() affects every
builder constructed afterwards but never one that already exists. Tests
that call it must call reset_defaults() between cases.
"""

from __future__ import annotations

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Mapping

import yaml
from pydantic import ValidationError

from fluentrest.errors import ConfigError
from fluentrest.models import EffectiveConfig
from fluentrest.proxy import parse_proxy_spec

ENV_TIMEOUT = "RA_TIMEOUT"
ENV_LOG_LEVEL = "RA_LOG_LEVEL"
ENV_LOG_FILE = "RA_LOG_FILE"
ENV_BASE_URL = "RA_BASE_URL"
ENV_PROXY = "RA_PROXY"

DEFAULT_TIMEOUT_MS = 10000
DEFAULT_LOG_LEVEL = "info"
DEFAULT_BASE_URL = "https://example.com"

# Keys accepted in override mappings
CONFIG_KEYS = frozenset({"timeout", "log_level", "log_file_path", "base_url", "proxy"})

_ENV_KEYS = {
    ENV_TIMEOUT: "timeout",
    ENV_LOG_LEVEL: "log_level",
    ENV_LOG_FILE: "log_file_path",
    ENV_BASE_URL: "base_url",
    ENV_PROXY: "proxy",
}


def default_log_file_path() -> str:
    """Per-process log file, relative to the working directory."""
    return f"logs/restassured-{os.getpid()}.log"


def compiled_defaults() -> EffectiveConfig:
    """Defaults used when no environment variable is set."""
    return EffectiveConfig(
        timeout=DEFAULT_TIMEOUT_MS,
        log_level=DEFAULT_LOG_LEVEL,
        log_file_path=default_log_file_path(),
        base_url=DEFAULT_BASE_URL,
        proxy=None,
    )


@lru_cache(maxsize=1)
def environment_defaults() -> EffectiveConfig:
    """Compiled-in defaults overlaid with RA_* environment variables.

    Computed once per process; call environment_defaults.cache_clear() to
    re-read the environment.
    """
    overrides: dict[str, Any] = {}
    for env_name, key in _ENV_KEYS.items():
        value = os.environ.get(env_name)
        if value is not None and value != "":
            overrides[key] = value
    return merge_config(compiled_defaults(), overrides)


def merge_config(
    base: EffectiveConfig,
    overrides: Mapping[str, Any] | None,
    version: int | None = None,
) -> EffectiveConfig:
    """Overlay an override mapping on a base config, key by key.

    Args:
        base: The lower-priority configuration.
        overrides: Higher-priority values; None values fall through.
        version: Registry version to stamp on the result (default: base's).

    Raises:
        ConfigError: On unknown keys or values that fail validation.
    """
    overrides = dict(overrides or {})
    unknown = set(overrides) - CONFIG_KEYS
    if unknown:
        raise ConfigError(
            f"Unknown configuration key(s): {', '.join(sorted(unknown))}. "
            f"Allowed: {', '.join(sorted(CONFIG_KEYS))}"
        )

    updates = {key: value for key, value in overrides.items() if value is not None}
    if "proxy" in updates:
        updates["proxy"] = parse_proxy_spec(updates["proxy"])

    merged = base.model_dump()
    merged.update(updates)
    merged["proxy"] = updates.get("proxy", base.proxy)
    merged["version"] = base.version if version is None else version

    try:
        return EffectiveConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


class DefaultsRegistry:
    """Process-scoped holder of the current default configuration.

    This is shared mutable state by intent. Every configure() bumps the
    version so snapshots derived from different registry states can be told
    apart. reset() drops all updates and returns to environment defaults.
    """

    def __init__(self, initial: Callable[[], EffectiveConfig] = environment_defaults) -> None:
        self._initial = initial
        self._lock = Lock()
        self._current: EffectiveConfig | None = None
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def current(self) -> EffectiveConfig:
        with self._lock:
            if self._current is None:
                self._current = self._initial()
            return self._current

    def configure(self, **partial: Any) -> EffectiveConfig:
        """Update the current defaults in place and return the new snapshot."""
        with self._lock:
            base = self._current if self._current is not None else self._initial()
            updated = merge_config(base, partial, version=self._version + 1)
            self._version += 1
            self._current = updated
            return updated

    def reset(self) -> None:
        with self._lock:
            self._current = None
            self._version = 0


_registry = DefaultsRegistry()


def default_registry() -> DefaultsRegistry:
    return _registry


def current_defaults() -> EffectiveConfig:
    return _registry.current()


def configure_defaults(**partial: Any) -> EffectiveConfig:
    """Change the process-wide defaults for all subsequently built requests."""
    return _registry.configure(**partial)


def reset_defaults() -> None:
    _registry.reset()


def resolve_config(
    overrides: Mapping[str, Any] | None = None,
    base: EffectiveConfig | None = None,
) -> EffectiveConfig:
    """Produce the effective configuration for one builder.

    Args:
        overrides: Per-instance values; they win over every other layer.
        base: Explicit base configuration. Defaults to the registry's
              current defaults.
    """
    if base is None:
        base = _registry.current()
    return merge_config(base, overrides)


def load_config_file(config_path: Path | str) -> dict[str, Any]:
    """Load an override mapping from YAML or JSON with ${ENV_VAR} substitution.

    The result is meant for resolve_config() or configure_defaults(); keys
    are validated there.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.suffix.lower() == ".json":
                raw_config = json.load(f)
            else:
                raw_config = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must contain a mapping")

    return _substitute_env_vars(raw_config)


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
