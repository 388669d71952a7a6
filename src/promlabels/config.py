"""
Centralized configuration management for promlabels.

Provides type-safe configuration handling using Pydantic BaseSettings with
validation and environment variable support.
"""

import json
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .util.errors import ConfigurationError

logger = logging.getLogger("promlabels.config")


class RendererConfig(BaseSettings):
    """Pretty printer layout settings."""

    # Lines longer than this are split by the pretty printer
    max_line_width: int = Field(default=100)
    indent_width: int = Field(default=2)

    @field_validator("max_line_width")
    @classmethod
    def validate_max_line_width(cls, v):
        """Validate the line width is usable."""
        if not 20 <= v <= 1000:
            raise ValueError("max_line_width must be between 20 and 1000")
        return v

    @field_validator("indent_width")
    @classmethod
    def validate_indent_width(cls, v):
        """Validate the indentation width."""
        if not 0 <= v <= 8:
            raise ValueError("indent_width must be between 0 and 8")
        return v

    @property
    def indent(self) -> str:
        return " " * self.indent_width

    model_config = SettingsConfigDict(env_prefix="PROMLABELS_RENDER_")


class InjectorConfig(BaseSettings):
    """Label matcher injection settings."""

    # Level used when a query or operator is rejected and "" is returned
    failure_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")

    @field_validator("failure_log_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def failure_level(self) -> int:
        return getattr(logging, self.failure_log_level)

    model_config = SettingsConfigDict(env_prefix="PROMLABELS_INJECT_")


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="WARNING")
    log_format: Literal["structured", "human"] = Field(default="human")
    log_file: str | None = Field(default=None)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    model_config = SettingsConfigDict(env_prefix="PROMLABELS_")


class PromLabelsConfig(BaseSettings):
    """Main configuration aggregating all subsystems."""

    renderer: RendererConfig = Field(default_factory=RendererConfig)
    injector: InjectorConfig = Field(default_factory=InjectorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load_from_file(cls, config_file: Path) -> "PromLabelsConfig":
        """Load configuration from a JSON file.

        Sections present in the file override the environment defaults;
        unknown sections or keys are rejected.

        Args:
            config_file: Path to configuration file

        Returns:
            Loaded configuration
        """
        try:
            with open(config_file) as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(str(config_file), f"cannot read configuration: {e}", cause=e)

        sections = {}
        for section_name, section_data in config_data.items():
            section_type = cls._section_types().get(section_name)
            if section_type is None:
                raise ConfigurationError(section_name, "unknown configuration section")
            try:
                sections[section_name] = section_type(**section_data)
            except ValueError as e:
                raise ConfigurationError(section_name, str(e), cause=e)

        logger.info(f"Configuration loaded from file: {config_file}")
        return cls(**sections)

    @classmethod
    def _section_types(cls) -> dict[str, type[BaseSettings]]:
        return {
            "renderer": RendererConfig,
            "injector": InjectorConfig,
            "logging": LoggingConfig,
        }

    def to_dict(self) -> dict[str, Any]:
        """Export configuration to dictionary."""
        return self.model_dump()

    model_config = SettingsConfigDict(env_prefix="PROMLABELS_", case_sensitive=False)


# Global configuration instance
_global_config: PromLabelsConfig | None = None


def _load_from_environment() -> PromLabelsConfig:
    try:
        return PromLabelsConfig()
    except ValueError as e:
        raise ConfigurationError("environment", str(e), cause=e) from e


def get_config() -> PromLabelsConfig:
    """Get the global configuration instance.

    Loaded lazily from the environment on first use.

    Raises:
        ConfigurationError: if a PROMLABELS_ variable holds an invalid value
    """
    global _global_config
    if _global_config is None:
        _global_config = _load_from_environment()
    return _global_config


def set_config(config: PromLabelsConfig) -> None:
    """Replace the global configuration instance."""
    global _global_config
    _global_config = config


def reload_config() -> PromLabelsConfig:
    """Reload configuration from the environment."""
    global _global_config
    _global_config = _load_from_environment()
    return _global_config


def load_config_from_file(config_file: Path) -> PromLabelsConfig:
    """Load configuration from file and make it the global instance."""
    config = PromLabelsConfig.load_from_file(config_file)
    set_config(config)
    return config


def get_renderer_config() -> RendererConfig:
    return get_config().renderer


def get_injector_config() -> InjectorConfig:
    return get_config().injector


def get_logging_config() -> LoggingConfig:
    return get_config().logging
