"""Centralized logging for opencoders-sdk.

Usage:
    from opencoders_sdk._logger import get_logger

    logger = get_logger(__name__)
    logger.info("connected to %s", url)

Environment variables:
    - OPENCODERS_LOG_LEVEL: level for every SDK module (default: WARNING)
    - OPENCODERS_LOG_LEVEL_<MODULE>: per-module override, e.g.
      OPENCODERS_LOG_LEVEL_STREAM=DEBUG or OPENCODERS_LOG_LEVEL_CLIENT=INFO
"""

from __future__ import annotations

import logging
import os
import sys
from typing import ClassVar

LOGGER_NAME = "opencoders_sdk"
LEVEL_ENV = "OPENCODERS_LOG_LEVEL"

_configured_loggers: set[str] = set()


class ColoredFormatter(logging.Formatter):
    """Level-colored single-line formatter for interactive stderr."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "DIM": "\033[2m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        reset = self.COLORS["RESET"]
        color = self.COLORS.get(record.levelname, "")
        timestamp = self.formatTime(record, "%H:%M:%S")

        name = record.name
        if name.startswith(f"{LOGGER_NAME}."):
            name = name[len(LOGGER_NAME) + 1 :]

        return (
            f"{self.COLORS['DIM']}{timestamp}{reset} "
            f"{color}{record.levelname:<8}{reset} "
            f"{self.COLORS['DIM']}{name}:{record.lineno}{reset} {record.getMessage()}"
        )


def _level_from_env(var: str) -> int | None:
    value = os.getenv(var)
    if not value:
        return None
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else None


def _get_module_log_level(module_path: str) -> int | None:
    """Resolve a per-module override, most specific first.

    For "stream.parser" the variables checked are
    OPENCODERS_LOG_LEVEL_STREAM_PARSER, then OPENCODERS_LOG_LEVEL_STREAM.
    """
    parts = module_path.upper().replace(".", "_").split("_")
    for i in range(len(parts), 0, -1):
        level = _level_from_env(f"{LEVEL_ENV}_{'_'.join(parts[:i])}")
        if level is not None:
            return level
    return None


def _setup_sdk_logger() -> None:
    if LOGGER_NAME in _configured_loggers:
        return

    sdk_logger = logging.getLogger(LOGGER_NAME)
    sdk_logger.setLevel(_level_from_env(LEVEL_ENV) or logging.WARNING)
    sdk_logger.propagate = False

    if not sdk_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        if sys.stderr.isatty():
            handler.setFormatter(ColoredFormatter())
        else:
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        sdk_logger.addHandler(handler)

    _configured_loggers.add(LOGGER_NAME)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger below the SDK root.

    Args:
        name: Full module name ("opencoders_sdk.client") or a name relative
            to the SDK root ("client"). None returns the root logger.

    Returns:
        The configured logger.
    """
    _setup_sdk_logger()

    if name is None:
        return logging.getLogger(LOGGER_NAME)

    full_name = name if name.startswith(LOGGER_NAME) else f"{LOGGER_NAME}.{name}"
    module_logger = logging.getLogger(full_name)

    if full_name not in _configured_loggers:
        relative = full_name[len(LOGGER_NAME) + 1 :]
        if relative:
            level = _get_module_log_level(relative)
            if level is not None:
                module_logger.setLevel(level)
        _configured_loggers.add(full_name)

    return module_logger


_setup_sdk_logger()

logger = get_logger()

__all__ = ["LOGGER_NAME", "get_logger", "logger"]
