"""The control loop.

:class:`Program` is the composition root. Each iteration it drains
background results (task supervisor, event feed, log queue) and polls one
input event. While any of those produced something it goes round again
immediately; only when everything is quiet does it wait for the tick,
purge finished tasks and render.

Effects returned by the update function are executed here and nowhere
else. Errors raised while executing an effect or drawing are fatal and
propagate out of :meth:`Program.run`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from opencoders_sdk._config import ClientSettings

from opencoders_cli.app.effects import (
    AutoResize,
    Batch,
    CancelTask,
    Effect,
    NestedBatchError,
    NoEffect,
    Operation,
    RebootTerminal,
    ReconnectEventStream,
    ResizeInline,
    ScrollPastHeight,
    StartEventStream,
    StopEventStream,
)
from opencoders_cli.app.operations import OperationRunner
from opencoders_cli.app.state import AppState, Model
from opencoders_cli.app.update import update
from opencoders_cli.config import OpencodersConfig
from opencoders_cli.events import (
    ActiveTaskCount,
    AppEvent,
    InitializeClient,
    LogRecorded,
    MessagesViewed,
    ShortcutExpired,
    TaskFailed,
    describe,
)
from opencoders_cli.feed import EventFeed
from opencoders_cli.keymap import key_to_event
from opencoders_cli.logging import LogEvent, get_logger
from opencoders_cli.tasks import TaskSupervisor
from opencoders_cli.terminal import Terminal

logger = get_logger(__name__)

UpdateFn = Callable[[Model, AppEvent], tuple[Model, Effect]]
Tick = Callable[[], Awaitable[None]]

LOG_DISPLAY_LEVEL = logging.WARNING


def _task_failed(task_id: int, error: BaseException) -> AppEvent:
    return TaskFailed(task_id=task_id, error=f"{type(error).__name__}: {error}")


class Program:
    """Runs the application from startup until the model reaches QUIT.

    Args:
        config: Loaded configuration.
        terminal: Terminal backend.
        settings: Client settings for server discovery.
        supervisor: Task supervisor, created if omitted.
        feed: Event feed, created if omitted.
        operations: Operation runner, created from ``settings`` if omitted.
        update_fn: The update function.
        tick: Awaited when the loop is idle. Defaults to sleeping one tick interval.
        clock: Monotonic clock used for shortcut timeouts.
        log_queue: Queue filled by the TUI log handler.
    """

    def __init__(
        self,
        config: OpencodersConfig,
        terminal: Terminal,
        *,
        settings: ClientSettings | None = None,
        supervisor: TaskSupervisor[AppEvent] | None = None,
        feed: EventFeed | None = None,
        operations: OperationRunner | None = None,
        update_fn: UpdateFn = update,
        tick: Tick | None = None,
        clock: Callable[[], float] = time.monotonic,
        log_queue: asyncio.Queue[LogEvent] | None = None,
    ) -> None:
        self.model = Model.from_config(config)
        self.iterations = 0
        self._config = config
        self._terminal = terminal
        self._supervisor = supervisor or TaskSupervisor(on_error=_task_failed)
        self._feed = feed or EventFeed()
        self._operations = operations or OperationRunner(settings)
        self._update = update_fn
        self._tick = tick or self._sleep_tick
        self._clock = clock
        self._log_queue = log_queue

    async def _sleep_tick(self) -> None:
        await asyncio.sleep(self._config.display.tick_interval)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def run(self) -> Model:
        """Run until QUIT and return the final model."""
        self._terminal.open()
        try:
            self.dispatch(InitializeClient())
            while self.model.state is not AppState.QUIT:
                await self.step()
        finally:
            await self._shutdown()
        return self.model

    async def _shutdown(self) -> None:
        await self._feed.aclose()
        await self._supervisor.shutdown()
        try:
            self._terminal.close()
        finally:
            if self.model.client is not None:
                await self.model.client.aclose()

    async def step(self) -> None:
        """One loop iteration."""
        self.iterations += 1
        if self.model.state is AppState.QUIT:
            return

        handled = self._drain_background()
        handled = self._poll_input() or handled
        if handled:
            await asyncio.sleep(0)
            return

        await self._tick()
        self._on_tick()

    def _drain_background(self) -> bool:
        handled = False
        # Each source is drained after the previous one was dispatched, so a
        # feed stopped by a task result never delivers stale events.
        for drain in (self._supervisor.drain_inbox, self._feed.drain, self._drain_logs):
            for event in drain():
                self.dispatch(event)
                handled = True
        return handled

    def _drain_logs(self) -> list[AppEvent]:
        if self._log_queue is None:
            return []
        events: list[AppEvent] = []
        while not self._log_queue.empty():
            entry = self._log_queue.get_nowait()
            if entry.levelno >= LOG_DISPLAY_LEVEL:
                events.append(LogRecorded(level=entry.level, message=entry.message))
        return events

    def _poll_input(self) -> bool:
        raw = self._terminal.poll_input()
        if raw is None:
            return False
        event = key_to_event(raw, self.model, self._clock())
        if event is not None:
            self.dispatch(event)
        return True

    def _on_tick(self) -> None:
        self._supervisor.purge_finished()

        if self.model.pending_shortcut is not None:
            now = self._clock()
            if now > self.model.shortcut_deadline:
                self.dispatch(ShortcutExpired(at=now))

        if self.model.needs_render:
            self.dispatch(ActiveTaskCount(count=self._supervisor.active_count()))
            printed = self.render()
            self.dispatch(MessagesViewed(printed=printed))

    def render(self) -> int:
        """Draw the model; return how many messages were echoed to scrollback."""
        model = self.model
        printed = 0
        if model.inline and model.store.streaming_count == 0:
            self._terminal.print_above(model.store.messages_pending_stdout_print())
            printed = model.store.unprinted_count
        self._terminal.draw(model)
        return printed

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, event: AppEvent) -> None:
        """Feed ``event`` through the update function and execute the result."""
        logger.debug("Dispatch %s", describe(event))
        self.model, effect = self._update(self.model, event)
        self.execute(effect)

    def execute(self, effect: Effect) -> None:
        """Carry out ``effect``.

        Raises:
            NestedBatchError: A batch contains another batch.
            TypeError: The effect type is unknown.
        """
        if isinstance(effect, NoEffect):
            return
        if isinstance(effect, Batch):
            for child in effect.effects:
                if isinstance(child, Batch):
                    raise NestedBatchError(f"Batch contains a nested batch: {child!r}")
            for child in effect.effects:
                self.execute(child)
            return
        if isinstance(effect, Operation):
            self._supervisor.spawn(self._operations.run(effect))
            return
        self._execute_control(effect)

    def _execute_control(self, effect: Any) -> None:
        if isinstance(effect, CancelTask):
            self._supervisor.cancel(effect.task_id)
        elif isinstance(effect, StartEventStream):
            self._feed.start(effect.client)
        elif isinstance(effect, StopEventStream):
            self._feed.stop()
        elif isinstance(effect, ReconnectEventStream):
            self._feed.reconnect(effect.client, effect.attempt, effect.delay)
        elif isinstance(effect, RebootTerminal):
            self._terminal.reboot(effect.inline, effect.height)
        elif isinstance(effect, ResizeInline):
            self._terminal.resize_inline(effect.height)
        elif isinstance(effect, AutoResize):
            self._terminal.autoresize()
        elif isinstance(effect, ScrollPastHeight):
            self._terminal.scroll_past_height()
        else:
            raise TypeError(f"Unknown effect: {type(effect).__name__}")
