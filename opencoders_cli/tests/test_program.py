"""Tests for opencoders_cli.app.program module."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import pytest
from cli_factories import (
    FakeClient,
    FakeStream,
    FakeTerminal,
    make_mode,
    make_snapshot,
    make_text,
    make_user,
    subscribe_with,
)
from opencoders_sdk._config import ClientSettings
from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.keys import Keys

from opencoders_cli.app import AppState, Batch, Effect, NestedBatchError
from opencoders_cli.app.effects import AutoResize, RebootTerminal, ResizeInline, ScrollPastHeight, StopEventStream
from opencoders_cli.app.operations import OperationRunner
from opencoders_cli.app.program import Program
from opencoders_cli.config import OpencodersConfig
from opencoders_cli.events import ModesLoaded, Shortcut
from opencoders_cli.feed import EventFeed
from opencoders_cli.logging import LogEvent


@dataclass(frozen=True)
class Bogus(Effect):
    pass


class TickCounter:
    def __init__(self, limit: int = 500) -> None:
        self.calls = 0
        self.limit = limit
        self.before: list[Callable[[], None]] = []

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls > self.limit:
            raise AssertionError("control loop did not settle")
        for hook in self.before:
            hook()
        await asyncio.sleep(0)


def _program(
    terminal: FakeTerminal,
    client: FakeClient | None = None,
    *,
    tick: TickCounter | None = None,
    clock: float = 100.0,
    log_queue: asyncio.Queue[LogEvent] | None = None,
) -> Program:
    fake = client or FakeClient()

    async def discover(settings: ClientSettings) -> FakeClient:
        return fake

    return Program(
        OpencodersConfig(),
        terminal,  # type: ignore[arg-type]
        feed=EventFeed(subscribe=subscribe_with(FakeStream(hang=True))),
        operations=OperationRunner(ClientSettings(_env_file=None), discover=discover),  # type: ignore[arg-type]
        tick=tick or TickCounter(),
        clock=lambda: clock,
        log_queue=log_queue,
    )


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestStep:
    async def test_input_and_result_handled_before_tick(self, fake_terminal: FakeTerminal) -> None:
        """A queued key and a finished operation are both processed without waiting for the tick."""
        tick = TickCounter()
        program = _program(fake_terminal, tick=tick)

        async def op() -> ModesLoaded:
            return ModesLoaded(modes=[make_mode("build")])

        program._supervisor.spawn(op())
        await _settle()
        fake_terminal.inputs.append(KeyPress(Keys.ControlC))

        await program.step()

        assert tick.calls == 0
        assert program.iterations == 1
        assert [m.name for m in program.model.modes] == ["build"]
        assert program.model.pending_shortcut is Shortcut.QUIT

    async def test_idle_step_ticks_and_renders(self, fake_terminal: FakeTerminal) -> None:
        tick = TickCounter()
        program = _program(fake_terminal, tick=tick)

        await program.step()
        assert tick.calls == 1
        assert fake_terminal.draws == 1
        assert not program.model.needs_render

        await program.step()
        assert tick.calls == 2
        assert fake_terminal.draws == 1

    async def test_shortcut_expires_on_tick(self, fake_terminal: FakeTerminal) -> None:
        program = _program(fake_terminal, clock=10.0)
        program.model.pending_shortcut = Shortcut.QUIT
        program.model.shortcut_deadline = 5.0

        await program.step()
        assert program.model.pending_shortcut is None

    async def test_log_queue_keeps_warnings(self, fake_terminal: FakeTerminal) -> None:
        queue: asyncio.Queue[LogEvent] = asyncio.Queue()
        queue.put_nowait(LogEvent(level="DEBUG", message="noise"))
        queue.put_nowait(LogEvent(level="WARNING", message="careful"))
        program = _program(fake_terminal, log_queue=queue)

        await program.step()
        assert list(program.model.recent_logs) == ["WARNING: careful"]

    async def test_task_failure_reported(self, fake_terminal: FakeTerminal) -> None:
        program = _program(fake_terminal)

        async def op() -> ModesLoaded:
            raise RuntimeError("boom")

        program._supervisor.spawn(op())
        await _settle()
        await program.step()
        assert program.model.notice == "Background task failed: RuntimeError: boom"

    async def test_step_after_quit_does_nothing(self, fake_terminal: FakeTerminal) -> None:
        tick = TickCounter()
        program = _program(fake_terminal, tick=tick)
        program.model.state = AppState.QUIT
        await program.step()
        assert tick.calls == 0


class TestRender:
    def _loaded(self, fake_terminal: FakeTerminal) -> Program:
        program = _program(fake_terminal)
        store = program.model.store
        store.set_session("ses_1")
        store.load_snapshot([
            make_snapshot(make_user("m1"), make_text("p1", "m1", "one")),
            make_snapshot(make_user("m2"), make_text("p2", "m2", "two")),
        ])
        return program

    async def test_inline_echoes_finished_messages(self, fake_terminal: FakeTerminal) -> None:
        program = self._loaded(fake_terminal)
        assert program.render() == 2
        assert fake_terminal.printed == ["one", "two"]
        assert fake_terminal.draws == 1

    async def test_no_echo_while_streaming(self, fake_terminal: FakeTerminal) -> None:
        program = self._loaded(fake_terminal)
        program.model.store.upsert_message(make_user("m3"))
        assert program.render() == 0
        assert fake_terminal.printed == []

    async def test_no_echo_in_fullscreen(self, fake_terminal: FakeTerminal) -> None:
        program = self._loaded(fake_terminal)
        program.model.inline = False
        assert program.render() == 0

    async def test_tick_marks_echoed_messages(self, fake_terminal: FakeTerminal) -> None:
        program = self._loaded(fake_terminal)
        await program.step()
        assert program.model.printed_count == 2
        assert program.model.store.unprinted_count == 0


class TestExecute:
    async def test_nested_batch_rejected_before_running_anything(self, fake_terminal: FakeTerminal) -> None:
        program = _program(fake_terminal)
        nested = Batch((AutoResize(), Batch((ScrollPastHeight(),))))
        with pytest.raises(NestedBatchError):
            program.execute(nested)
        assert fake_terminal.calls == []

    async def test_unknown_effect(self, fake_terminal: FakeTerminal) -> None:
        program = _program(fake_terminal)
        with pytest.raises(TypeError, match="Bogus"):
            program.execute(Bogus())

    async def test_terminal_effects(self, fake_terminal: FakeTerminal) -> None:
        program = _program(fake_terminal)
        program.execute(Batch((RebootTerminal(inline=False, height=20), ResizeInline(8), AutoResize())))
        program.execute(ScrollPastHeight())
        program.execute(StopEventStream())
        assert fake_terminal.calls == [
            ("reboot", False, 20),
            ("resize_inline", 8),
            ("autoresize",),
            ("scroll_past_height",),
        ]


class TestRun:
    async def test_connects_and_quits(self, fake_terminal: FakeTerminal, fake_client: FakeClient) -> None:
        """Startup reaches TEXT_ENTRY with history loaded; Ctrl+C twice shuts everything down."""
        tick = TickCounter()
        program = _program(fake_terminal, fake_client, tick=tick)

        def quit_when_ready() -> None:
            model = program.model
            if model.state is AppState.TEXT_ENTRY and len(model.store) and not fake_terminal.inputs:
                fake_terminal.inputs.extend([KeyPress(Keys.ControlC), KeyPress(Keys.ControlC)])

        tick.before.append(quit_when_ready)
        model = await program.run()

        assert model.state is AppState.QUIT
        assert model.session is not None
        assert model.store.message_ids == ["msg_1"]
        assert [m.name for m in model.modes] == ["build", "plan"]
        assert fake_terminal.opened
        assert fake_terminal.closed
        assert fake_client.closed

    async def test_connection_error_then_quit(self, fake_terminal: FakeTerminal) -> None:
        from opencoders_sdk.errors import ServerNotFoundError

        client = FakeClient()
        client.error = ServerNotFoundError()
        tick = TickCounter()
        program = _program(fake_terminal, client, tick=tick)

        def quit_on_error() -> None:
            if program.model.state is AppState.CONNECTION_ERROR and not fake_terminal.inputs:
                fake_terminal.inputs.append(KeyPress("q"))

        tick.before.append(quit_on_error)
        model = await program.run()

        assert model.state is AppState.QUIT
        assert model.error_message == "Failed to connect to OpenCode server: No running OpenCode server found"
