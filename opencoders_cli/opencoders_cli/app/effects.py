"""Effects: side work requested by the update function.

An effect is plain data. The control loop interprets it: operations go
to the task supervisor, feed control to the event feed, terminal control
to the terminal backend.

A :class:`Batch` never contains another batch. Build batches with
:func:`batch`, which flattens; the executor rejects nested batches.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opencoders_sdk import OpenCodeClient


class NestedBatchError(RuntimeError):
    """A batch effect contained another batch."""


@dataclass(frozen=True)
class Effect:
    pass


@dataclass(frozen=True)
class NoEffect(Effect):
    pass


NONE = NoEffect()


@dataclass(frozen=True)
class Batch(Effect):
    effects: tuple[Effect, ...]


def _flatten(effect: Effect) -> Iterator[Effect]:
    if isinstance(effect, Batch):
        for child in effect.effects:
            yield from _flatten(child)
    elif not isinstance(effect, NoEffect):
        yield effect


def batch(*effects: Effect) -> Effect:
    """Combine effects, flattening batches and dropping empty ones."""
    flat = [leaf for effect in effects for leaf in _flatten(effect)]
    if not flat:
        return NONE
    if len(flat) == 1:
        return flat[0]
    return Batch(tuple(flat))


# =============================================================================
# Background operations
# =============================================================================


@dataclass(frozen=True)
class Operation(Effect):
    """Async work whose result comes back as one application event."""


@dataclass(frozen=True)
class DiscoverClient(Operation):
    pass


@dataclass(frozen=True)
class CloseClient(Operation):
    """Release a client replaced by a newer connection."""

    client: OpenCodeClient


@dataclass(frozen=True)
class InitializeSession(Operation):
    client: OpenCodeClient
    session_id: str | None = None
    fresh: bool = False


@dataclass(frozen=True)
class CreateSessionAndSend(Operation):
    client: OpenCodeClient
    message_id: str
    text: str
    provider_id: str
    model_id: str
    mode: str | None = None


@dataclass(frozen=True)
class LoadSessions(Operation):
    client: OpenCodeClient


@dataclass(frozen=True)
class LoadModes(Operation):
    client: OpenCodeClient


@dataclass(frozen=True)
class LoadMessages(Operation):
    client: OpenCodeClient
    session_id: str


@dataclass(frozen=True)
class SendMessage(Operation):
    client: OpenCodeClient
    session_id: str
    message_id: str
    text: str
    provider_id: str
    model_id: str
    mode: str | None = None


@dataclass(frozen=True)
class AbortSession(Operation):
    client: OpenCodeClient
    session_id: str


@dataclass(frozen=True)
class CancelTask(Effect):
    task_id: int


# =============================================================================
# Event feed control
# =============================================================================


@dataclass(frozen=True)
class StartEventStream(Effect):
    client: OpenCodeClient


@dataclass(frozen=True)
class StopEventStream(Effect):
    pass


@dataclass(frozen=True)
class ReconnectEventStream(Effect):
    client: OpenCodeClient
    attempt: int
    delay: float


# =============================================================================
# Terminal control
# =============================================================================


@dataclass(frozen=True)
class RebootTerminal(Effect):
    inline: bool
    height: int


@dataclass(frozen=True)
class ResizeInline(Effect):
    height: int


@dataclass(frozen=True)
class AutoResize(Effect):
    pass


@dataclass(frozen=True)
class ScrollPastHeight(Effect):
    pass
