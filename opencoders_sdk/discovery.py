"""Locating a running OpenCode server.

Candidates are tried in order:

1. ``OPENCODE_SERVER_URL`` (``ClientSettings.server_url``)
2. A running ``opencode serve`` process found in ``ps aux``
3. In dev mode only, a freshly started ``opencode serve``

Each candidate is validated with ``GET /app`` before it is returned.
"""

from __future__ import annotations

import asyncio
import contextlib

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from opencoders_sdk._config import ClientSettings
from opencoders_sdk._logger import get_logger
from opencoders_sdk.errors import (
    ApiError,
    ConnectionTimeoutError,
    HttpError,
    OpenCodeError,
    ProcessDetectionError,
    ServerNotFoundError,
    ServerStartError,
    ServerTimeoutError,
)

logger = get_logger(__name__)

DEFAULT_HOSTNAME = "127.0.0.1"
SERVER_STARTUP_GRACE = 2.0


async def _probe(url: str, timeout: float) -> None:
    async with httpx.AsyncClient(timeout=timeout) as http:
        try:
            response = await http.get(f"{url.rstrip('/')}/app")
        except httpx.TimeoutException as e:
            raise ServerTimeoutError(f"GET {url}/app timed out") from e
        except httpx.HTTPError as e:
            raise HttpError(f"GET {url}/app failed: {e}") from e
    if response.status_code >= 400:
        raise ApiError(response.status_code, response.text)


async def validate_server(url: str, *, timeout: float = 5.0, retries: int = 3, retry_delay: float = 0.5) -> None:
    """Check that an OpenCode server answers at ``url``.

    Args:
        url: Server base URL.
        timeout: Per-attempt timeout in seconds.
        retries: Number of attempts.
        retry_delay: Delay after the first failed attempt, doubled after each further one.

    Raises:
        ConnectionTimeoutError: The last attempt timed out.
        OpenCodeError: The last attempt failed for another reason.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(OpenCodeError),
        wait=wait_exponential(multiplier=retry_delay),
        stop=stop_after_attempt(max(retries, 1)),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                await _probe(url, timeout)
    except ServerTimeoutError as e:
        raise ConnectionTimeoutError(url) from e


def extract_server_url(line: str) -> str | None:
    """Extract the server URL from an ``opencode serve`` command line.

    Understands ``--port N``/``-p N``/``--port=N`` and
    ``--hostname H``/``-h H``/``--hostname=H``. Lines without a valid port
    yield None.
    """
    args = line.split()
    hostname = DEFAULT_HOSTNAME
    port: int | None = None

    for i, arg in enumerate(args):
        value: str | None = None
        if "=" in arg:
            arg, value = arg.split("=", 1)
        elif i + 1 < len(args):
            value = args[i + 1]
        if value is None:
            continue
        if arg in ("--port", "-p"):
            with contextlib.suppress(ValueError):
                candidate = int(value)
                if 0 < candidate < 65536:
                    port = candidate
        elif arg in ("--hostname", "-h"):
            hostname = value

    if port is None:
        return None
    return f"http://{hostname}:{port}"


async def detect_running_server() -> str | None:
    """Find the URL of an ``opencode serve`` process on this machine.

    Raises:
        ProcessDetectionError: The process list could not be read.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "ps",
            "aux",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await process.communicate()
    except OSError as e:
        raise ProcessDetectionError(f"Failed to list processes: {e}") from e

    for line in stdout.decode(errors="replace").splitlines():
        if "opencode" in line and "serve" in line:
            url = extract_server_url(line)
            if url:
                return url
    return None


async def start_local_server(settings: ClientSettings) -> str:
    """Start ``opencode serve`` and wait until it answers.

    The server keeps running after the client exits. It is killed only if
    it never becomes reachable.

    Raises:
        ServerStartError: The process could not be spawned or never became reachable.
    """
    url = f"http://{settings.dev_hostname}:{settings.dev_port}"
    try:
        process = await asyncio.create_subprocess_exec(
            "opencode",
            "serve",
            "--port",
            str(settings.dev_port),
            "--hostname",
            settings.dev_hostname,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise ServerStartError(f"Failed to spawn opencode serve: {e}") from e

    logger.info("Started opencode serve (pid=%s), waiting for %s", process.pid, url)
    await asyncio.sleep(SERVER_STARTUP_GRACE)

    try:
        await validate_server(url, timeout=10.0, retries=10, retry_delay=1.0)
    except OpenCodeError as e:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise ServerStartError(f"Server started but validation failed: {e}") from e
    return url


async def discover_server(settings: ClientSettings | None = None) -> str:
    """Return the URL of a reachable OpenCode server.

    Raises:
        ServerNotFoundError: No candidate could be validated.
    """
    settings = settings or ClientSettings()

    async def _validated(url: str) -> bool:
        try:
            await validate_server(
                url,
                timeout=settings.validation_timeout,
                retries=settings.validation_retries,
                retry_delay=settings.validation_retry_delay,
            )
        except OpenCodeError as e:
            logger.warning("Server at %s is not reachable: %s", url, e)
            return False
        return True

    if settings.server_url and await _validated(settings.server_url):
        return settings.server_url

    try:
        detected = await detect_running_server()
    except ProcessDetectionError as e:
        logger.debug("Process detection failed: %s", e)
        detected = None
    if detected and await _validated(detected):
        logger.info("Found running server at %s", detected)
        return detected

    if settings.dev:
        try:
            return await start_local_server(settings)
        except ServerStartError as e:
            logger.warning("%s", e)

    raise ServerNotFoundError()


__all__ = [
    "detect_running_server",
    "discover_server",
    "extract_server_url",
    "start_local_server",
    "validate_server",
]
