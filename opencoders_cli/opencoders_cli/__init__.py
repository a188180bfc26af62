"""opencoders - terminal client for the OpenCode server."""

from __future__ import annotations

import importlib.metadata
import logging


def _configure_logging() -> None:
    """Keep third-party loggers quiet unless something goes wrong."""
    if not logging.root.handlers:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s: %(message)s",
        )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.CRITICAL)


_configure_logging()

try:
    __version__ = importlib.metadata.version("opencoders")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"
