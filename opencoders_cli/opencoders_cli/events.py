"""Application events.

Every stimulus the update function reacts to is one of the dataclasses
below: key input, results of background operations, event feed lifecycle
and notifications, and signals synthesized by the control loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opencoders_sdk import OpenCodeClient
    from opencoders_sdk.events import ServerEvent
    from opencoders_sdk.models import MessageSnapshot, ModeInfo, SessionInfo

    from opencoders_cli.app.state import AppState


class Shortcut(Enum):
    """Shortcuts that act only when pressed twice, or that arm a follow-up key."""

    QUIT = "quit"
    ABORT = "abort"
    LEADER = "leader"


@dataclass
class AppEvent:
    """Base class for all application events."""


# =============================================================================
# Input
# =============================================================================


@dataclass
class KeyPressed(AppEvent):
    text: str


@dataclass
class Backspace(AppEvent):
    pass


@dataclass
class InsertNewline(AppEvent):
    pass


@dataclass
class MoveCursor(AppEvent):
    delta: int


@dataclass
class SubmitInput(AppEvent):
    pass


@dataclass
class ClearInput(AppEvent):
    pass


@dataclass
class ScrollLog(AppEvent):
    delta: int


@dataclass
class CycleMode(AppEvent):
    pass


@dataclass
class ChangeState(AppEvent):
    target: AppState


@dataclass
class ChangeInline(AppEvent):
    pass


@dataclass
class ChangeInlineHeight(AppEvent):
    height: int


@dataclass
class TerminalResize(AppEvent):
    width: int
    height: int


@dataclass
class ShortcutPressed(AppEvent):
    shortcut: Shortcut
    at: float


@dataclass
class ShortcutCancelled(AppEvent):
    pass


@dataclass
class Quit(AppEvent):
    pass


@dataclass
class RetryConnection(AppEvent):
    pass


@dataclass
class RestartEventStream(AppEvent):
    pass


@dataclass
class NewSession(AppEvent):
    pass


@dataclass
class ShowSessionSelector(AppEvent):
    pass


@dataclass
class SelectorMove(AppEvent):
    delta: int


@dataclass
class SelectorConfirm(AppEvent):
    pass


@dataclass
class SelectorClose(AppEvent):
    pass


# =============================================================================
# Background operation results
# =============================================================================


@dataclass
class InitializeClient(AppEvent):
    pass


@dataclass
class ClientConnected(AppEvent):
    client: OpenCodeClient


@dataclass
class ClientClosed(AppEvent):
    pass


@dataclass
class ClientConnectionFailed(AppEvent):
    error: str


@dataclass
class SessionReady(AppEvent):
    session: SessionInfo


@dataclass
class SessionInitializationFailed(AppEvent):
    error: str


@dataclass
class SessionCreatedWithMessage(AppEvent):
    session: SessionInfo
    message_id: str
    text: str
    provider_id: str
    model_id: str
    mode: str | None = None


@dataclass
class SessionCreationFailed(AppEvent):
    error: str


@dataclass
class SessionsLoaded(AppEvent):
    sessions: list[SessionInfo]


@dataclass
class SessionsLoadFailed(AppEvent):
    error: str


@dataclass
class ModesLoaded(AppEvent):
    modes: list[ModeInfo]


@dataclass
class ModesLoadFailed(AppEvent):
    error: str


@dataclass
class MessagesLoaded(AppEvent):
    session_id: str
    messages: list[MessageSnapshot]


@dataclass
class MessagesLoadFailed(AppEvent):
    session_id: str
    error: str


@dataclass
class UserMessageSent(AppEvent):
    session_id: str
    message_id: str


@dataclass
class UserMessageSendFailed(AppEvent):
    error: str


@dataclass
class SessionAborted(AppEvent):
    session_id: str


@dataclass
class SessionAbortFailed(AppEvent):
    error: str


@dataclass
class TaskFailed(AppEvent):
    """A background operation raised instead of resolving to an event."""

    task_id: int
    error: str


# =============================================================================
# Event feed
# =============================================================================


@dataclass
class EventStreamConnected(AppEvent):
    pass


@dataclass
class EventStreamLost(AppEvent):
    reason: str


@dataclass
class EventStreamReconnecting(AppEvent):
    attempt: int


@dataclass
class EventReceived(AppEvent):
    event: ServerEvent


# =============================================================================
# Control loop signals
# =============================================================================


@dataclass
class MessagesViewed(AppEvent):
    """Emitted after every render; ``printed`` messages were echoed to scrollback."""

    printed: int = 0


@dataclass
class ActiveTaskCount(AppEvent):
    count: int


@dataclass
class ShortcutExpired(AppEvent):
    at: float


@dataclass
class LogRecorded(AppEvent):
    level: str
    message: str


QUIET_EVENTS: tuple[type[AppEvent], ...] = (MessagesViewed, ActiveTaskCount, ClientClosed)
"""Events that never request a render on their own."""


def describe(event: AppEvent) -> str:
    """Short label for logging, without payloads that may be large."""
    name = type(event).__name__
    fields: dict[str, Any] = {
        key: value for key, value in vars(event).items() if isinstance(value, int | float | bool | Enum)
    }
    if not fields:
        return name
    return f"{name}({', '.join(f'{k}={v}' for k, v in fields.items())})"
