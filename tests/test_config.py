"""Tests for configuration resolution.

Tests cover:
- environment_defaults: compiled defaults, RA_* variables, memoization
- DefaultsRegistry / configure_defaults: versioning, reset, isolation of
  builders already constructed
- resolve_config: key-by-key merge, unknown keys, invalid values
- load_config_file: YAML/JSON loading with ${ENV_VAR} substitution
"""

import json
import os

import pytest

from fluentrest.builder import RequestBuilder
from fluentrest.config import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_MS,
    DefaultsRegistry,
    configure_defaults,
    current_defaults,
    default_registry,
    environment_defaults,
    load_config_file,
    reset_defaults,
    resolve_config,
)
from fluentrest.errors import ConfigError, InvalidProxyConfig, InvalidProxyUrl
from fluentrest.models import ClassicProxy, EffectiveConfig, LogLevel


# =============================================================================
# Environment Defaults
# =============================================================================


class TestEnvironmentDefaults:
    """Compiled-in defaults overlaid with RA_* variables."""

    def test_compiled_defaults_without_environment(self) -> None:
        """No RA_* variables yields the compiled-in defaults."""
        config = environment_defaults()
        assert config.timeout == DEFAULT_TIMEOUT_MS
        assert config.log_level is LogLevel.INFO
        assert config.base_url == DEFAULT_BASE_URL
        assert config.proxy is None
        assert config.log_file_path == f"logs/restassured-{os.getpid()}.log"

    def test_environment_variables_override_defaults(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Each RA_* variable overrides its key."""
        monkeypatch.setenv("RA_TIMEOUT", "2500")
        monkeypatch.setenv("RA_LOG_LEVEL", "debug")
        monkeypatch.setenv("RA_BASE_URL", "https://api.test")
        monkeypatch.setenv("RA_PROXY", "http://proxy.test:8080")
        environment_defaults.cache_clear()

        config = environment_defaults()
        assert config.timeout == 2500
        assert config.log_level is LogLevel.DEBUG
        assert config.base_url == "https://api.test"
        assert config.proxy == "http://proxy.test:8080"

    def test_environment_read_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values are memoized until cache_clear()."""
        first = environment_defaults()
        monkeypatch.setenv("RA_TIMEOUT", "1234")
        assert environment_defaults() is first

        environment_defaults.cache_clear()
        assert environment_defaults().timeout == 1234

    def test_invalid_timeout_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Non-integer timeout is a configuration error."""
        monkeypatch.setenv("RA_TIMEOUT", "soon")
        environment_defaults.cache_clear()
        with pytest.raises(ConfigError, match="Invalid configuration"):
            environment_defaults()

    def test_invalid_proxy_url_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """RA_PROXY must be an http(s) URL."""
        monkeypatch.setenv("RA_PROXY", "socks5://proxy.test:1080")
        environment_defaults.cache_clear()
        with pytest.raises(InvalidProxyUrl):
            environment_defaults()


# =============================================================================
# Defaults Registry
# =============================================================================


class TestDefaultsRegistry:
    """Process-wide defaults: configure, version, reset."""

    def test_configure_updates_and_bumps_version(self) -> None:
        """Each configure() call returns a new snapshot with a higher version."""
        assert current_defaults().version == 0

        updated = configure_defaults(timeout=500)
        assert updated.timeout == 500
        assert updated.version == 1
        assert current_defaults() is updated

        again = configure_defaults(base_url="https://api.test")
        assert again.version == 2
        assert again.timeout == 500  # earlier update persists

    def test_reset_returns_to_environment_defaults(self) -> None:
        """reset() drops all updates."""
        configure_defaults(timeout=500)
        reset_defaults()
        assert current_defaults().timeout == DEFAULT_TIMEOUT_MS
        assert default_registry().version == 0

    def test_failed_configure_leaves_state(self) -> None:
        """A rejected update changes neither values nor version."""
        configure_defaults(timeout=500)
        with pytest.raises(ConfigError):
            configure_defaults(timeout=-1)
        assert current_defaults().timeout == 500
        assert default_registry().version == 1

    def test_existing_builders_keep_their_config(self) -> None:
        """configure_defaults affects builders constructed afterwards only."""
        before = RequestBuilder()
        configure_defaults(base_url="https://changed.test")
        after = RequestBuilder()

        assert before.get_snapshot()["base_url"] == DEFAULT_BASE_URL
        assert after.get_snapshot()["base_url"] == "https://changed.test"

    def test_independent_registry(self) -> None:
        """A private registry does not touch the shared one."""
        registry = DefaultsRegistry()
        registry.configure(timeout=42)
        assert registry.current().timeout == 42
        assert current_defaults().timeout == DEFAULT_TIMEOUT_MS


# =============================================================================
# resolve_config
# =============================================================================


class TestResolveConfig:
    """Key-by-key merging of overrides onto the current defaults."""

    def test_overrides_win_key_by_key(self) -> None:
        """Overridden keys change; absent keys fall through."""
        configure_defaults(timeout=500, base_url="https://defaults.test")
        config = resolve_config({"timeout": 100})
        assert config.timeout == 100
        assert config.base_url == "https://defaults.test"

    def test_none_values_fall_through(self) -> None:
        """A None override is treated as absent."""
        config = resolve_config({"timeout": None, "base_url": None})
        assert config.timeout == DEFAULT_TIMEOUT_MS
        assert config.base_url == DEFAULT_BASE_URL

    def test_unknown_key_raises(self) -> None:
        """Misspelled keys are rejected rather than ignored."""
        with pytest.raises(ConfigError, match="Unknown configuration key"):
            resolve_config({"timout": 100})

    def test_invalid_log_level_raises(self) -> None:
        """Log level must be none, info or debug."""
        with pytest.raises(ConfigError):
            resolve_config({"log_level": "verbose"})

    def test_explicit_base_config(self) -> None:
        """An explicitly passed config replaces the registry as the base."""
        base = EffectiveConfig(
            timeout=77, log_file_path="x.log", base_url="https://base.test"
        )
        config = resolve_config({"log_level": "none"}, base=base)
        assert config.timeout == 77
        assert config.base_url == "https://base.test"
        assert config.log_level is LogLevel.NONE

    def test_proxy_mapping_parsed(self) -> None:
        """A boundary-shaped proxy mapping becomes a ClassicProxy."""
        proxy = {"host": "proxy.test", "port": 3128, "auth": {"username": "u", "password": "p"}}
        config = resolve_config({"proxy": proxy})
        assert isinstance(config.proxy, ClassicProxy)
        assert config.proxy.host == "proxy.test"
        assert config.proxy.auth.username == "u"

    def test_proxy_mapping_missing_port_raises(self) -> None:
        """Classic proxy without port is rejected at configuration time."""
        with pytest.raises(InvalidProxyConfig):
            resolve_config({"proxy": {"host": "proxy.test"}})


# =============================================================================
# Config Files
# =============================================================================


class TestLoadConfigFile:
    """YAML and JSON override files."""

    def test_load_yaml_with_env_substitution(
        self, tmp_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """${VAR} patterns are substituted from the environment."""
        monkeypatch.setenv("API_HOST", "api.test")
        path = tmp_path / "fluentrest.yaml"
        path.write_text("base_url: https://${API_HOST}\ntimeout: 3000\n")

        overrides = load_config_file(path)
        assert overrides == {"base_url": "https://api.test", "timeout": 3000}
        assert resolve_config(overrides).base_url == "https://api.test"

    def test_load_json(self, tmp_path) -> None:
        """.json files are parsed as JSON."""
        path = tmp_path / "fluentrest.json"
        path.write_text(json.dumps({"log_level": "debug"}))
        assert load_config_file(path) == {"log_level": "debug"}

    def test_missing_file_raises(self, tmp_path) -> None:
        """Nonexistent file is a configuration error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config_file(tmp_path / "missing.yaml")

    def test_unset_env_var_raises(self, tmp_path) -> None:
        """Referencing an unset variable is a configuration error."""
        path = tmp_path / "fluentrest.yaml"
        path.write_text("base_url: ${FLUENTREST_SURELY_UNSET_VAR}\n")
        with pytest.raises(ConfigError, match="FLUENTREST_SURELY_UNSET_VAR"):
            load_config_file(path)

    def test_non_mapping_root_raises(self, tmp_path) -> None:
        """A list at the root is not an override mapping."""
        path = tmp_path / "fluentrest.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config_file(path)

    def test_invalid_yaml_raises(self, tmp_path) -> None:
        """Malformed YAML is a configuration error."""
        path = tmp_path / "fluentrest.yaml"
        path.write_text("base_url: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config_file(path)
