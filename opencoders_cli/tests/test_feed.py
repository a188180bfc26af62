"""Tests for opencoders_cli.feed module."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from cli_factories import FakeStream, subscribe_with
from opencoders_sdk.errors import EventStreamError, ServerTimeoutError
from opencoders_sdk.events import OtherEvent, SessionIdle

from opencoders_cli.events import EventReceived, EventStreamConnected, EventStreamLost, EventStreamReconnecting
from opencoders_cli.feed import (
    Connected,
    Disconnected,
    EventFeed,
    Failed,
    Reconnecting,
    on_stream_connected,
    on_stream_error,
    on_teardown,
    status_text,
)


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


class TestStateMachine:
    def test_first_error_starts_reconnecting(self) -> None:
        assert on_stream_error(Connected(), "gone") == Reconnecting(attempt=1, last_error="gone")
        assert on_stream_error(Disconnected(), "gone") == Reconnecting(attempt=1, last_error="gone")

    def test_attempts_count_up_then_fail(self) -> None:
        state = on_stream_error(Connected(), "e1", max_attempts=3)
        state = on_stream_error(state, "e2", max_attempts=3)
        assert state == Reconnecting(attempt=2, last_error="e2")
        state = on_stream_error(state, "e3", max_attempts=3)
        assert state == Reconnecting(attempt=3, last_error="e3")
        state = on_stream_error(state, "e4", max_attempts=3)
        assert state == Failed(error="e4")

    def test_failed_is_terminal(self) -> None:
        failed = Failed(error="x")
        assert on_stream_error(failed, "again") is failed
        assert on_stream_connected(failed) is failed

    def test_connected_resets(self) -> None:
        assert on_stream_connected(Reconnecting(attempt=2, last_error="x")) == Connected()

    def test_teardown(self) -> None:
        assert on_teardown(Failed(error="x")) == Disconnected()

    @pytest.mark.parametrize(
        ("state", "expected"),
        [
            (Connected(), "live"),
            (Disconnected(), "offline"),
            (Reconnecting(attempt=2, last_error="x"), "reconnecting 2/3"),
            (Failed(error="x"), "disconnected"),
        ],
    )
    def test_status_text(self, state: Any, expected: str) -> None:
        assert status_text(state, 3) == expected


class TestEventFeed:
    async def test_events_then_lost_when_stream_ends(self) -> None:
        idle = SessionIdle(session_id="ses_1")
        stream = FakeStream([idle])
        feed = EventFeed(subscribe=subscribe_with(stream))

        feed.start(object())  # type: ignore[arg-type]
        await _settle()

        events = feed.drain()
        assert isinstance(events[0], EventStreamConnected)
        assert events[1] == EventReceived(event=idle)
        assert isinstance(events[2], EventStreamLost)
        assert stream.closed

    async def test_stream_error_reason(self) -> None:
        stream = FakeStream([], error=EventStreamError("socket closed"))
        feed = EventFeed(subscribe=subscribe_with(stream))

        feed.start(object())  # type: ignore[arg-type]
        await _settle()

        events = feed.drain()
        assert events[-1] == EventStreamLost(reason="socket closed")

    async def test_subscribe_failure_is_lost(self) -> None:
        feed = EventFeed(subscribe=subscribe_with(ServerTimeoutError("timed out")))

        feed.start(object())  # type: ignore[arg-type]
        await _settle()

        assert feed.drain() == [EventStreamLost(reason="timed out")]
        assert not feed.running

    async def test_stop_discards_pending_events(self) -> None:
        stream = FakeStream([OtherEvent(type="file.edited")], hang=True)
        feed = EventFeed(subscribe=subscribe_with(stream))

        feed.start(object())  # type: ignore[arg-type]
        await _settle()
        assert feed.running

        feed.stop()
        await _settle()
        assert feed.drain() == []
        assert not feed.running

    async def test_start_replaces_subscription(self) -> None:
        first = FakeStream([], hang=True)
        second = FakeStream([OtherEvent(type="file.edited")], hang=True)
        feed = EventFeed(subscribe=subscribe_with(first, second))

        feed.start(object())  # type: ignore[arg-type]
        await _settle()
        feed.start(object())  # type: ignore[arg-type]
        await _settle()

        events = feed.drain()
        assert [type(e) for e in events] == [EventStreamConnected, EventReceived]
        assert first.closed
        await feed.aclose()
        assert second.closed

    async def test_reconnect_announces_attempt(self) -> None:
        feed = EventFeed(subscribe=subscribe_with(FakeStream([], hang=True)))

        feed.reconnect(object(), attempt=2, delay=0)  # type: ignore[arg-type]
        await _settle()

        events = feed.drain()
        assert events[0] == EventStreamReconnecting(attempt=2)
        assert isinstance(events[1], EventStreamConnected)
        await feed.aclose()

    async def test_aclose_without_start(self) -> None:
        feed = EventFeed(subscribe=subscribe_with())
        await feed.aclose()
        assert not feed.running
