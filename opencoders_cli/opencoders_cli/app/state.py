"""Application state.

The whole UI is described by one :class:`Model`. It is created once at
startup in ``WELCOME`` and only the update function changes it.

State flow::

    WELCOME -> CONNECTING -> INITIALIZING_SESSION -> TEXT_ENTRY
                   |                 |
                   +--------+--------+
                            v
                    CONNECTION_ERROR --(retry)--> CONNECTING

Any state can move to QUIT.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from prompt_toolkit.buffer import Buffer

from opencoders_cli.config import OpencodersConfig
from opencoders_cli.conversation import ConversationStore
from opencoders_cli.events import Shortcut
from opencoders_cli.feed import Disconnected, FeedState
from opencoders_cli.selector import SelectableList

if TYPE_CHECKING:
    from opencoders_sdk import OpenCodeClient
    from opencoders_sdk.models import ModeInfo, SessionInfo


class AppState(Enum):
    WELCOME = auto()
    CONNECTING = auto()
    INITIALIZING_SESSION = auto()
    TEXT_ENTRY = auto()
    CONNECTION_ERROR = auto()
    QUIT = auto()


STATE_LABELS: dict[AppState, str] = {
    AppState.WELCOME: "Welcome",
    AppState.CONNECTING: "Connecting",
    AppState.INITIALIZING_SESSION: "Starting session",
    AppState.TEXT_ENTRY: "Ready",
    AppState.CONNECTION_ERROR: "Error",
    AppState.QUIT: "Quitting",
}


@dataclass
class Model:
    config: OpencodersConfig = field(default_factory=OpencodersConfig)

    state: AppState = AppState.WELCOME
    error_message: str | None = None
    """Text shown in the CONNECTION_ERROR state."""

    notice: str | None = None
    """Non-fatal status message."""

    input: Buffer = field(default_factory=lambda: Buffer(multiline=True))
    """Prompt line contents."""
    store: ConversationStore = field(default_factory=ConversationStore)

    client: OpenCodeClient | None = None
    session: SessionInfo | None = None
    requested_session_id: str | None = None
    """Session picked in the selector, used by the next session initialization."""

    feed_state: FeedState = field(default_factory=Disconnected)
    active_task_count: int = 0
    needs_render: bool = True
    printed_count: int = 0
    """Messages echoed to scrollback so far (inline mode only). Never decreases."""

    inline: bool = True
    inline_height: int = 12
    terminal_size: tuple[int, int] = (80, 24)
    scroll_offset: int = 0

    modes: list[ModeInfo] = field(default_factory=list)
    mode_index: int | None = None

    selector: SelectableList[SessionInfo] | None = None

    pending_shortcut: Shortcut | None = None
    shortcut_deadline: float = 0.0

    recent_logs: deque[str] = field(default_factory=lambda: deque(maxlen=3))

    @classmethod
    def from_config(cls, config: OpencodersConfig) -> Model:
        return cls(
            config=config,
            inline=config.display.inline,
            inline_height=config.display.inline_height,
            recent_logs=deque(maxlen=config.display.max_log_lines),
        )

    @property
    def session_id(self) -> str | None:
        return self.session.id if self.session else None

    @property
    def current_mode(self) -> ModeInfo | None:
        if self.mode_index is None or not self.modes:
            return None
        return self.modes[self.mode_index]

    def shortcut_active(self, shortcut: Shortcut, now: float) -> bool:
        return self.pending_shortcut is shortcut and now <= self.shortcut_deadline

    def resolve_model(self) -> tuple[str, str, str | None]:
        """Provider, model and mode for the next message."""
        mode = self.current_mode
        provider = self.config.model.provider
        model = self.config.model.model
        if mode is not None and mode.provider_id and mode.model_id:
            provider, model = mode.provider_id, mode.model_id
        return provider, model, mode.name if mode else self.config.model.mode
