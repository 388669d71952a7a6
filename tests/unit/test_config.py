"""
Unit tests for centralized configuration management.

Tests defaults, validation, environment overrides, file loading and the
process-global configuration instance.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from promlabels.config import (
    InjectorConfig,
    LoggingConfig,
    PromLabelsConfig,
    RendererConfig,
    get_config,
    get_injector_config,
    get_renderer_config,
    load_config_from_file,
    reload_config,
    set_config,
)
from promlabels.util.errors import ConfigurationError


class TestRendererConfig:
    """Test RendererConfig validation and defaults."""

    def test_default_values(self):
        """Test default configuration values."""
        config = RendererConfig()
        assert config.max_line_width == 100
        assert config.indent_width == 2
        assert config.indent == "  "

    def test_max_line_width_validation(self):
        """Test max_line_width bounds."""
        with pytest.raises(ValidationError):
            RendererConfig(max_line_width=10)

        with pytest.raises(ValidationError):
            RendererConfig(max_line_width=5000)

    def test_indent_width_validation(self):
        """Test indent_width bounds."""
        with pytest.raises(ValidationError):
            RendererConfig(indent_width=-1)

        with pytest.raises(ValidationError):
            RendererConfig(indent_width=9)

    def test_environment_override(self, monkeypatch):
        """Test environment variables with the renderer prefix."""
        monkeypatch.setenv("PROMLABELS_RENDER_MAX_LINE_WIDTH", "80")
        assert RendererConfig().max_line_width == 80


class TestInjectorConfig:
    """Test InjectorConfig level handling."""

    def test_default_failure_level(self):
        """Test failures are logged at WARNING by default."""
        config = InjectorConfig()
        assert config.failure_log_level == "WARNING"
        assert config.failure_level == logging.WARNING

    def test_level_is_case_insensitive(self):
        """Test lowercase level names are accepted."""
        assert InjectorConfig(failure_log_level="debug").failure_level == logging.DEBUG

    def test_invalid_level(self):
        """Test unknown level names are rejected."""
        with pytest.raises(ValidationError):
            InjectorConfig(failure_log_level="LOUD")

    def test_environment_override(self, monkeypatch):
        """Test environment variables with the injector prefix."""
        monkeypatch.setenv("PROMLABELS_INJECT_FAILURE_LOG_LEVEL", "info")
        assert InjectorConfig().failure_level == logging.INFO


class TestLoggingConfig:
    """Test LoggingConfig defaults."""

    def test_default_values(self):
        """Test the library stays quiet by default."""
        config = LoggingConfig()
        assert config.log_level == "WARNING"
        assert config.log_format == "human"
        assert config.log_file is None

    def test_invalid_format(self):
        """Test only known formats are accepted."""
        with pytest.raises(ValidationError):
            LoggingConfig(log_format="xml")


class TestPromLabelsConfig:
    """Test the aggregate configuration and global instance."""

    def test_default_initialization(self):
        """Test every section is populated."""
        config = PromLabelsConfig()
        assert isinstance(config.renderer, RendererConfig)
        assert isinstance(config.injector, InjectorConfig)
        assert isinstance(config.logging, LoggingConfig)

    def test_to_dict(self):
        """Test export to a plain dictionary."""
        data = PromLabelsConfig().to_dict()
        assert data["renderer"]["max_line_width"] == 100
        assert data["injector"]["failure_log_level"] == "WARNING"

    def test_global_instance_is_cached(self):
        """Test get_config returns the same instance until reloaded."""
        first = get_config()
        assert get_config() is first
        assert reload_config() is not first

    def test_set_config(self):
        """Test replacing the global instance."""
        config = PromLabelsConfig(renderer=RendererConfig(max_line_width=60))
        set_config(config)
        assert get_renderer_config().max_line_width == 60

    def test_reload_picks_up_environment(self, monkeypatch):
        """Test reload_config re-reads environment variables."""
        get_config()
        monkeypatch.setenv("PROMLABELS_INJECT_FAILURE_LOG_LEVEL", "ERROR")
        reload_config()
        assert get_injector_config().failure_level == logging.ERROR

    @pytest.mark.parametrize("name", ["LOGGING", "RENDERER", "INJECTOR"])
    def test_unprefixed_section_variables_are_ignored(self, monkeypatch, name):
        """Test host variables named like a section do not reach the config."""
        monkeypatch.setenv(name, "debug")
        config = reload_config()
        assert config.logging.log_level == "WARNING"
        assert config.renderer.max_line_width == 100
        assert config.injector.failure_log_level == "WARNING"

    def test_invalid_environment_raises_configuration_error(self, monkeypatch):
        """Test invalid PROMLABELS_ values surface as ConfigurationError."""
        monkeypatch.setenv("PROMLABELS_RENDER_MAX_LINE_WIDTH", "5")
        with pytest.raises(ConfigurationError) as exc_info:
            get_config()
        assert exc_info.value.details["config_key"] == "environment"
        assert isinstance(exc_info.value.cause, ValueError)


class TestLoadFromFile:
    """Test JSON configuration files."""

    def test_load_sections(self, tmp_path):
        """Test sections in the file override defaults."""
        path = tmp_path / "promlabels.json"
        path.write_text(json.dumps({"renderer": {"max_line_width": 120, "indent_width": 4}}))

        config = load_config_from_file(path)
        assert config.renderer.max_line_width == 120
        assert config.renderer.indent == "    "
        assert config.injector.failure_log_level == "WARNING"
        assert get_config() is config

    def test_unknown_section(self, tmp_path):
        """Test unknown sections are rejected."""
        path = tmp_path / "promlabels.json"
        path.write_text(json.dumps({"dashboards": {}}))

        with pytest.raises(ConfigurationError) as exc_info:
            PromLabelsConfig.load_from_file(path)
        assert exc_info.value.details["config_key"] == "dashboards"

    def test_invalid_value(self, tmp_path):
        """Test validation errors are wrapped."""
        path = tmp_path / "promlabels.json"
        path.write_text(json.dumps({"renderer": {"max_line_width": 1}}))

        with pytest.raises(ConfigurationError) as exc_info:
            PromLabelsConfig.load_from_file(path)
        assert isinstance(exc_info.value.cause, ValidationError)

    def test_missing_file(self, tmp_path):
        """Test unreadable files raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="cannot read configuration"):
            PromLabelsConfig.load_from_file(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        """Test invalid JSON raises ConfigurationError."""
        path = tmp_path / "promlabels.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            PromLabelsConfig.load_from_file(path)
