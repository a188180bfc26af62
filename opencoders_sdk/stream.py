"""Server-sent event stream over ``GET /event``."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator

import httpx

from opencoders_sdk._logger import get_logger
from opencoders_sdk.errors import EventStreamError, SerializationError
from opencoders_sdk.events import ServerEvent, parse_event

logger = get_logger(__name__)

# Reads block until the server pushes something, so only connecting is bounded.
STREAM_TIMEOUT = httpx.Timeout(10.0, read=None)


class EventStream:
    """A live subscription to server events.

    Iterate with ``async for``. Iteration ends when the server closes the
    stream and raises :class:`EventStreamError` when the transport fails.
    Frames that cannot be decoded are logged and skipped.

    Example:
        stream = await client.subscribe_events()
        try:
            async for event in stream:
                print(event.type)
        finally:
            await stream.aclose()
    """

    def __init__(self, http: httpx.AsyncClient, url: str) -> None:
        self._http = http
        self._url = url
        self._stack = contextlib.AsyncExitStack()
        self._response: httpx.Response | None = None

    @property
    def connected(self) -> bool:
        return self._response is not None

    async def connect(self) -> None:
        """Open the HTTP stream.

        Raises:
            EventStreamError: The request failed or was answered with an error status.
        """
        if self._response is not None:
            return
        try:
            response = await self._stack.enter_async_context(
                self._http.stream("GET", self._url, headers={"Accept": "text/event-stream"}, timeout=STREAM_TIMEOUT)
            )
        except httpx.HTTPError as e:
            await self._stack.aclose()
            raise EventStreamError(f"Failed to subscribe to events: {e}") from e

        if response.status_code >= 400:
            await self._stack.aclose()
            raise EventStreamError(f"Event subscription rejected with status {response.status_code}")

        self._response = response
        logger.debug("Subscribed to %s", self._url)

    async def aclose(self) -> None:
        self._response = None
        await self._stack.aclose()

    async def __aenter__(self) -> EventStream:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def __aiter__(self) -> AsyncIterator[ServerEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ServerEvent]:
        await self.connect()
        response = self._response
        if response is None:
            raise EventStreamError("Event stream is not connected")

        data_lines: list[str] = []
        try:
            async for line in response.aiter_lines():
                if line:
                    if line.startswith("data:"):
                        data_lines.append(line[5:].removeprefix(" "))
                    continue
                if data_lines:
                    event = _decode(data_lines)
                    data_lines = []
                    if event is not None:
                        yield event
        except httpx.HTTPError as e:
            raise EventStreamError(f"Event stream interrupted: {e}") from e

        if data_lines:
            event = _decode(data_lines)
            if event is not None:
                yield event
        logger.debug("Event stream closed by server")


def _decode(data_lines: list[str]) -> ServerEvent | None:
    data = "\n".join(data_lines)
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Skipping undecodable event frame: %.200s", data)
        return None
    if not isinstance(payload, dict):
        logger.warning("Skipping non-object event frame: %.200s", data)
        return None
    try:
        return parse_event(payload)
    except SerializationError as e:
        logger.warning("Skipping event: %s", e)
        return None


__all__ = ["EventStream"]
