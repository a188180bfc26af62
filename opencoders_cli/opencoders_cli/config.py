"""Configuration management for opencoders.

Sources, lowest priority first:

1. Built-in defaults
2. **config.toml**, project-level priority (no merging between files):
   - Global: ~/.config/opencoders/config.toml
   - Project: .opencoders/config.toml (replaces the global file entirely)
3. **Environment variables** (OPENCODERS_*), merged on top of the file

Server connection settings (OPENCODE_SERVER_URL, ...) belong to
``opencoders_sdk._config.ClientSettings`` and are not handled here.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# Configuration Models
# =============================================================================


class ModelConfig(BaseModel):
    """Model used when the active mode does not pin one."""

    provider: str = "anthropic"
    """Provider id as known to the server."""

    model: str = "claude-sonnet-4-20250514"
    """Model id as known to the server."""

    mode: str | None = None
    """Mode selected at startup. None picks the first mode the server lists."""


class DisplayConfig(BaseModel):
    """Terminal and rendering configuration."""

    inline: bool = True
    """Render in a fixed-height region below the prompt instead of the alternate screen."""

    inline_height: int = Field(default=12, ge=3)
    """Rows used by the inline region."""

    tick_interval: float = Field(default=0.016, gt=0)
    """Seconds between render ticks when idle."""

    max_log_lines: int = Field(default=3, ge=0)
    """Warnings kept for the status area."""

    mouse: bool = True
    """Enable mouse wheel scrolling."""


class FeedConfig(BaseModel):
    """Event stream reconnection policy."""

    max_reconnect_attempts: int = Field(default=3, ge=1)
    """Reconnect attempts before the feed is reported as disconnected."""

    reconnect_delay: float = Field(default=1.0, ge=0)
    """Seconds to wait before each reconnect attempt."""


class KeysConfig(BaseModel):
    """Key handling configuration."""

    repeat_shortcut_timeout: float = Field(default=2.0, gt=0)
    """Window in seconds for double-press shortcuts and the Ctrl+X leader."""


class OpencodersConfig(BaseModel):
    """Complete opencoders configuration."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)


# =============================================================================
# Environment Settings
# =============================================================================


class EnvSettings(BaseSettings):
    """Overrides from OPENCODERS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OPENCODERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    provider: str | None = None
    model: str | None = None
    mode: str | None = None

    inline: bool | None = None
    inline_height: int | None = None
    tick_interval: float | None = None

    max_reconnect_attempts: int | None = None
    reconnect_delay: float | None = None

    repeat_shortcut_timeout: float | None = None


_ENV_SECTIONS: dict[str, tuple[str, ...]] = {
    "model": ("provider", "model", "mode"),
    "display": ("inline", "inline_height", "tick_interval"),
    "feed": ("max_reconnect_attempts", "reconnect_delay"),
    "keys": ("repeat_shortcut_timeout",),
}


# =============================================================================
# ConfigManager
# =============================================================================


class ConfigManager:
    """Loads configuration from global, project and environment sources."""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "opencoders"
    PROJECT_CONFIG_DIR = ".opencoders"

    def __init__(
        self,
        config_dir: Path | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._config_dir = config_dir or self.DEFAULT_CONFIG_DIR
        self._project_dir = project_dir or Path.cwd()
        self._config: OpencodersConfig | None = None
        self._loaded_sources: list[str] = []

    @property
    def config(self) -> OpencodersConfig:
        """Current configuration, loaded on first access."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    @property
    def loaded_sources(self) -> list[str]:
        return self._loaded_sources.copy()

    def get_global_config_file(self) -> Path:
        return self._config_dir / "config.toml"

    def get_project_config_file(self) -> Path:
        return self._project_dir / self.PROJECT_CONFIG_DIR / "config.toml"

    def load(self) -> OpencodersConfig:
        """Load configuration from all sources.

        Raises:
            tomllib.TOMLDecodeError: A config file is not valid TOML.
            pydantic.ValidationError: A value is out of range or of the wrong type.
        """
        self._loaded_sources = []
        merged: dict[str, Any] = {}

        for config_file in (self.get_project_config_file(), self.get_global_config_file()):
            if config_file.exists():
                with open(config_file, "rb") as f:
                    merged = tomllib.load(f)
                self._loaded_sources.append(str(config_file))
                break

        env_overrides = self._load_env_overrides()
        if env_overrides:
            merged = _deep_merge(merged, env_overrides)
            self._loaded_sources.append("environment")

        self._config = OpencodersConfig.model_validate(merged)
        return self._config

    def reload(self) -> OpencodersConfig:
        self._config = None
        return self.load()

    def _load_env_overrides(self) -> dict[str, Any]:
        env = EnvSettings()
        overrides: dict[str, Any] = {}
        for section, names in _ENV_SECTIONS.items():
            values = {name: getattr(env, name) for name in names if getattr(env, name) is not None}
            if values:
                overrides[section] = values
        return overrides


# =============================================================================
# Internal Utilities
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_dir: Path | None = None,
    project_dir: Path | None = None,
) -> OpencodersConfig:
    """Create a ConfigManager and load configuration."""
    return ConfigManager(config_dir=config_dir, project_dir=project_dir).load()
