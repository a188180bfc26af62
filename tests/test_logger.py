"""Tests for opencoders_sdk._logger module."""

import logging

from opencoders_sdk._logger import LOGGER_NAME, ColoredFormatter, _get_module_log_level, get_logger


def test_get_logger_names() -> None:
    assert get_logger().name == LOGGER_NAME
    assert get_logger("client").name == "opencoders_sdk.client"
    assert get_logger("opencoders_sdk.stream").name == "opencoders_sdk.stream"


def test_module_level_override(monkeypatch) -> None:
    monkeypatch.setenv("OPENCODERS_LOG_LEVEL_STREAM", "DEBUG")
    assert _get_module_log_level("stream") == logging.DEBUG
    assert _get_module_log_level("stream.parser") == logging.DEBUG
    assert _get_module_log_level("client") is None


def test_invalid_level_is_ignored(monkeypatch) -> None:
    monkeypatch.setenv("OPENCODERS_LOG_LEVEL_CLIENT", "LOUD")
    assert _get_module_log_level("client") is None


def test_colored_formatter_strips_root_name() -> None:
    record = logging.LogRecord("opencoders_sdk.client", logging.WARNING, __file__, 10, "hi %s", ("there",), None)
    output = ColoredFormatter().format(record)
    assert "client:10" in output
    assert "opencoders_sdk.client" not in output
    assert "hi there" in output
