"""Logging configuration for the opencoders terminal client.

Before the terminal is taken over, ``configure_logging()`` sends records to
stderr. Once the UI is running, ``configure_tui_logging()`` redirects the
client and SDK loggers into a queue so log output never lands on top of
the rendered viewport. The control loop drains that queue.

Usage:
    from opencoders_cli.logging import configure_tui_logging, get_logger

    log_queue = asyncio.Queue()
    configure_tui_logging(log_queue)
    get_logger(__name__).warning("shown in the status line")
"""

from __future__ import annotations

import logging
from asyncio import Queue
from dataclasses import dataclass, field
from datetime import datetime

TUI_LOGGER_NAME = "opencoders_cli"
SDK_LOGGER_NAME = "opencoders_sdk"

_initialized = False


@dataclass
class LogEvent:
    """A log record captured for display.

    Attributes:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        logger_name: Name of the emitting logger.
        message: Formatted message.
        func_name: Function that logged.
        line_no: Line that logged.
    """

    level: str = "INFO"
    logger_name: str = ""
    message: str = ""
    func_name: str = ""
    line_no: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def levelno(self) -> int:
        level = logging.getLevelName(self.level)
        return level if isinstance(level, int) else logging.INFO


class QueueHandler(logging.Handler):
    """Logging handler that puts LogEvents into an asyncio queue."""

    def __init__(self, queue: Queue[LogEvent], level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._queue = queue

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._queue.put_nowait(
                LogEvent(
                    level=record.levelname,
                    logger_name=record.name,
                    message=self.format(record),
                    func_name=record.funcName,
                    line_no=record.lineno,
                )
            )
        except Exception:
            self.handleError(record)


def _install(name: str, handler: logging.Handler, level: int) -> None:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def configure_tui_logging(queue: Queue[LogEvent], level: int = logging.INFO) -> None:
    """Redirect client and SDK logging into ``queue``.

    Only the first call takes effect until :func:`reset_logging` is called.

    Args:
        queue: Queue that receives LogEvents.
        level: Minimum level captured.
    """
    global _initialized

    if _initialized:
        return

    for name in (TUI_LOGGER_NAME, SDK_LOGGER_NAME):
        handler = QueueHandler(queue, level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        _install(name, handler, level)

    _initialized = True


def reset_logging() -> None:
    """Remove all handlers installed by this module."""
    global _initialized

    for name in (TUI_LOGGER_NAME, SDK_LOGGER_NAME):
        logging.getLogger(name).handlers.clear()

    _initialized = False


def configure_logging(verbose: bool = False) -> None:
    """Send client and SDK logging to stderr for CLI startup.

    Args:
        verbose: DEBUG level if True, otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    for name in (TUI_LOGGER_NAME, SDK_LOGGER_NAME):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        _install(name, handler, level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the client namespace."""
    if not name.startswith(TUI_LOGGER_NAME):
        name = f"{TUI_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
