"""Event feed client.

Keeps one live subscription to the server event stream in a background
task and surfaces its lifecycle as application events: connected, lost
(with a reason), reconnect attempt started, and one event per server
notification. The caller drains them with :meth:`EventFeed.drain`.

Whether to reconnect after a loss is decided by the reconnect state
machine (:func:`on_stream_error`), not by the feed itself.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from opencoders_sdk.errors import OpenCodeError

from opencoders_cli.events import (
    AppEvent,
    EventReceived,
    EventStreamConnected,
    EventStreamLost,
    EventStreamReconnecting,
)
from opencoders_cli.logging import get_logger

if TYPE_CHECKING:
    from opencoders_sdk import EventStream, OpenCodeClient

logger = get_logger(__name__)

MAX_RECONNECT_ATTEMPTS = 3


# =============================================================================
# Reconnect state machine
# =============================================================================


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Reconnecting:
    attempt: int
    last_error: str


@dataclass(frozen=True)
class Failed:
    error: str


FeedState = Disconnected | Connected | Reconnecting | Failed


def on_stream_error(state: FeedState, error: str, max_attempts: int = MAX_RECONNECT_ATTEMPTS) -> FeedState:
    """Next state after the subscription was lost.

    A live (or not yet established) subscription moves to the first
    reconnect attempt; each further loss counts up until ``max_attempts``
    attempts have been made, after which the feed fails for good.
    """
    if isinstance(state, Failed):
        return state
    if isinstance(state, Reconnecting):
        if state.attempt < max_attempts:
            return Reconnecting(attempt=state.attempt + 1, last_error=error)
        return Failed(error=error)
    return Reconnecting(attempt=1, last_error=error)


def on_stream_connected(state: FeedState) -> FeedState:
    return state if isinstance(state, Failed) else Connected()


def on_teardown(state: FeedState) -> FeedState:
    return Disconnected()


def status_text(state: FeedState, max_attempts: int = MAX_RECONNECT_ATTEMPTS) -> str:
    if isinstance(state, Connected):
        return "live"
    if isinstance(state, Reconnecting):
        return f"reconnecting {state.attempt}/{max_attempts}"
    if isinstance(state, Failed):
        return "disconnected"
    return "offline"


# =============================================================================
# Feed
# =============================================================================


Subscribe = Callable[["OpenCodeClient"], Awaitable["EventStream"]]


async def _default_subscribe(client: OpenCodeClient) -> EventStream:
    return await client.subscribe_events()


class EventFeed:
    """Background subscription with its own event channel.

    Args:
        subscribe: Opens the stream for a client. Defaults to
            ``client.subscribe_events()``.
    """

    def __init__(self, subscribe: Subscribe | None = None) -> None:
        self._subscribe = subscribe or _default_subscribe
        self._queue: asyncio.Queue[AppEvent] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, client: OpenCodeClient) -> None:
        """Replace any current subscription with a new one."""
        self._launch(client, attempt=None, delay=0.0)

    def reconnect(self, client: OpenCodeClient, attempt: int, delay: float) -> None:
        """Announce reconnect ``attempt`` and subscribe again after ``delay`` seconds."""
        self._launch(client, attempt=attempt, delay=delay)

    def stop(self) -> None:
        """Cancel the subscription and discard anything not yet drained."""
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.drain()

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def drain(self) -> list[AppEvent]:
        """Return every pending feed event without blocking."""
        events: list[AppEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def _launch(self, client: OpenCodeClient, attempt: int | None, delay: float) -> None:
        self.stop()
        self._task = asyncio.create_task(
            self._consume(self._generation, client, attempt, delay),
            name="opencoders-feed",
        )

    def _emit(self, generation: int, event: AppEvent) -> None:
        if generation == self._generation:
            self._queue.put_nowait(event)

    async def _consume(self, generation: int, client: OpenCodeClient, attempt: int | None, delay: float) -> None:
        if attempt is not None:
            self._emit(generation, EventStreamReconnecting(attempt=attempt))
            logger.info("Reconnecting to event stream (attempt %d)", attempt)
        if delay > 0:
            await asyncio.sleep(delay)

        try:
            stream = await self._subscribe(client)
        except OpenCodeError as e:
            logger.warning("Event subscription failed: %s", e)
            self._emit(generation, EventStreamLost(reason=str(e)))
            return

        self._emit(generation, EventStreamConnected())
        reason = "Event stream closed by server"
        try:
            async for event in stream:
                self._emit(generation, EventReceived(event=event))
        except OpenCodeError as e:
            reason = str(e)
        except Exception as e:
            logger.exception("Unexpected event stream failure")
            reason = f"{type(e).__name__}: {e}"
        finally:
            await stream.aclose()

        logger.warning("Event stream lost: %s", reason)
        self._emit(generation, EventStreamLost(reason=reason))
