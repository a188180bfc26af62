"""Client settings using pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Connection settings for the OpenCode server.

    Every field can be overridden from the environment with the OPENCODE_
    prefix, e.g. OPENCODE_SERVER_URL=http://127.0.0.1:4096.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENCODE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server_url: str | None = None
    """Explicit server URL. Skips process detection when set."""

    request_timeout: float = 30.0
    """Timeout in seconds for regular REST requests."""

    validation_timeout: float = 5.0
    """Timeout in seconds for each server validation attempt."""

    validation_retries: int = 3
    """Validation attempts per candidate URL."""

    validation_retry_delay: float = 0.5
    """Initial delay between validation attempts, doubled after each one."""

    dev: bool = False
    """Start a local `opencode serve` when no running server is found."""

    dev_hostname: str = "127.0.0.1"
    """Hostname used when starting a local server in dev mode."""

    dev_port: int = 8080
    """Port used when starting a local server in dev mode."""
