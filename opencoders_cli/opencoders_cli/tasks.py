"""Background task supervisor.

Runs one-shot operations concurrently with the control loop and funnels
each result into a single inbox. The control loop drains the inbox without
blocking; results come out in completion order.

Example:
    supervisor = TaskSupervisor(on_error=lambda task_id, e: TaskFailed(task_id, str(e)))
    task_id = supervisor.spawn(load_messages(client, session_id))
    ...
    for event in supervisor.drain_inbox():
        handle(event)
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Coroutine
from functools import partial
from typing import Any, Generic, TypeVar

from opencoders_cli.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TaskSupervisor(Generic[T]):
    """Owns the handle table of running operations and their shared inbox.

    Args:
        on_error: Builds the inbox entry for an operation that raised instead
            of returning its result, so every operation still yields exactly
            one entry.
    """

    def __init__(self, on_error: Callable[[int, BaseException], T]) -> None:
        self._on_error = on_error
        self._tasks: dict[int, asyncio.Task[T]] = {}
        self._inbox: asyncio.Queue[T] = asyncio.Queue()
        self._next_id = 0

    def spawn(self, operation: Coroutine[Any, Any, T]) -> int:
        """Start ``operation`` and return its task id (ids start at 1)."""
        self._next_id += 1
        task_id = self._next_id
        task = asyncio.create_task(operation, name=f"opencoders-task-{task_id}")
        task.add_done_callback(partial(self._on_done, task_id))
        self._tasks[task_id] = task
        logger.debug("Spawned task %d", task_id)
        return task_id

    def _on_done(self, task_id: int, task: asyncio.Task[T]) -> None:
        if task.cancelled():
            logger.debug("Task %d cancelled", task_id)
            return
        error = task.exception()
        if error is not None:
            logger.error("Task %d failed: %s", task_id, error, exc_info=error)
            self._inbox.put_nowait(self._on_error(task_id, error))
            return
        self._inbox.put_nowait(task.result())

    def cancel(self, task_id: int) -> bool:
        """Abort a task and forget its handle.

        Returns:
            False if the id is unknown or already purged.
        """
        task = self._tasks.pop(task_id, None)
        if task is None:
            logger.warning("Cannot cancel unknown task %d", task_id)
            return False
        task.cancel()
        return True

    def drain_inbox(self) -> list[T]:
        """Return every result produced since the last call, without blocking."""
        events: list[T] = []
        while True:
            try:
                events.append(self._inbox.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def purge_finished(self) -> int:
        """Forget handles of completed tasks. Returns how many were removed."""
        finished = [task_id for task_id, task in self._tasks.items() if task.done()]
        for task_id in finished:
            del self._tasks[task_id]
        return len(finished)

    def active_count(self) -> int:
        """Number of operations still running."""
        return sum(1 for task in self._tasks.values() if not task.done())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def abort_all(self) -> None:
        """Cancel every outstanding task without waiting."""
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()

    async def shutdown(self) -> None:
        """Cancel every outstanding task and wait until all have stopped."""
        tasks = list(self._tasks.values())
        self.abort_all()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    async def __aenter__(self) -> TaskSupervisor[T]:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.shutdown()
