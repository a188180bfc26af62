"""Fixtures for opencoders_cli tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from cli_factories import FakeClient, FakeTerminal, make_session

from opencoders_cli.app.state import AppState, Model
from opencoders_cli.config import ConfigManager, OpencodersConfig
from opencoders_cli.logging import reset_logging


@pytest.fixture
def temp_home(tmp_path: Path) -> Path:
    """Create a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def temp_config_dir(temp_home: Path) -> Path:
    """Create a temporary config directory under fake home."""
    config_dir = temp_home / ".config" / "opencoders"
    config_dir.mkdir(parents=True)
    return config_dir


@pytest.fixture
def temp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def config_manager(temp_config_dir: Path, temp_project_dir: Path) -> ConfigManager:
    """Create a ConfigManager with temp directories."""
    return ConfigManager(config_dir=temp_config_dir, project_dir=temp_project_dir)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Clean OPENCODERS_* and OPENCODE_* environment variables before and after test."""
    saved_vars: dict[str, str] = {}
    for key in list(os.environ.keys()):
        if key.startswith(("OPENCODERS_", "OPENCODE_")):
            saved_vars[key] = os.environ.pop(key)
    # Keep a stray .env in the working directory out of the settings
    monkeypatch.chdir(tmp_path)

    yield

    for key in list(os.environ.keys()):
        if key.startswith(("OPENCODERS_", "OPENCODE_")):
            del os.environ[key]
    for key, value in saved_vars.items():
        os.environ[key] = value


@pytest.fixture(autouse=True)
def reset_tui_logging() -> Generator[None, None, None]:
    """Undo logging redirection done by a test."""
    yield
    reset_logging()


@pytest.fixture
def config() -> OpencodersConfig:
    return OpencodersConfig()


@pytest.fixture
def model(config: OpencodersConfig) -> Model:
    """A fresh model in WELCOME."""
    return Model.from_config(config)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
def ready_model(model: Model, fake_client: FakeClient) -> Model:
    """A model in TEXT_ENTRY with a connected client and session ses_1."""
    session = make_session("ses_1")
    model.client = fake_client  # type: ignore[assignment]
    model.session = session
    model.store.set_session(session.id)
    model.state = AppState.TEXT_ENTRY
    model.needs_render = False
    return model
