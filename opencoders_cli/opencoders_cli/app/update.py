"""The update function: ``(Model, AppEvent) -> (Model, Effect)``.

This is the only place that decides what happens next. Handlers change
the model and describe follow-up work as effects. They never block and
never perform I/O. The model passed in is consumed: callers continue with
the returned one.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from opencoders_sdk.events import (
    MessagePartUpdated,
    MessageRemoved,
    MessageUpdated,
    SessionError,
    SessionIdle,
    SessionUpdated,
)
from opencoders_sdk.ids import IdPrefix, generate_id
from opencoders_sdk.models import AssistantMessage

from opencoders_cli.app.effects import (
    NONE,
    AbortSession,
    AutoResize,
    CloseClient,
    CreateSessionAndSend,
    DiscoverClient,
    Effect,
    InitializeSession,
    LoadMessages,
    LoadModes,
    LoadSessions,
    RebootTerminal,
    ReconnectEventStream,
    ResizeInline,
    ScrollPastHeight,
    SendMessage,
    StartEventStream,
    StopEventStream,
    batch,
)
from opencoders_cli.app.state import AppState, Model
from opencoders_cli.events import (
    QUIET_EVENTS,
    ActiveTaskCount,
    AppEvent,
    Backspace,
    ChangeInline,
    ChangeInlineHeight,
    ChangeState,
    ClearInput,
    ClientClosed,
    ClientConnected,
    ClientConnectionFailed,
    CycleMode,
    EventReceived,
    EventStreamConnected,
    EventStreamLost,
    EventStreamReconnecting,
    InitializeClient,
    InsertNewline,
    KeyPressed,
    LogRecorded,
    MessagesLoaded,
    MessagesLoadFailed,
    MessagesViewed,
    ModesLoaded,
    ModesLoadFailed,
    MoveCursor,
    NewSession,
    Quit,
    RestartEventStream,
    RetryConnection,
    ScrollLog,
    SelectorClose,
    SelectorConfirm,
    SelectorMove,
    SessionAborted,
    SessionAbortFailed,
    SessionCreatedWithMessage,
    SessionCreationFailed,
    SessionInitializationFailed,
    SessionReady,
    SessionsLoaded,
    SessionsLoadFailed,
    Shortcut,
    ShortcutCancelled,
    ShortcutExpired,
    ShortcutPressed,
    ShowSessionSelector,
    SubmitInput,
    TaskFailed,
    TerminalResize,
    UserMessageSendFailed,
    UserMessageSent,
    describe,
)
from opencoders_cli.feed import Disconnected, Failed, Reconnecting, on_stream_connected, on_stream_error
from opencoders_cli.logging import get_logger
from opencoders_cli.selector import SelectableList

logger = get_logger(__name__)

E = TypeVar("E", bound=AppEvent)
Handler = Callable[[Model, Any], Effect]

_HANDLERS: dict[type[AppEvent], Handler] = {}

MIN_INLINE_HEIGHT = 3

_LEADER_COMMANDS = (
    ShowSessionSelector,
    ChangeInline,
    ChangeInlineHeight,
    Quit,
    RestartEventStream,
    NewSession,
    ShortcutCancelled,
)


def _handles(*event_types: type[E]) -> Callable[[Callable[[Model, E], Effect]], Callable[[Model, E], Effect]]:
    def register(handler: Callable[[Model, E], Effect]) -> Callable[[Model, E], Effect]:
        for event_type in event_types:
            _HANDLERS[event_type] = handler
        return handler

    return register


def update(model: Model, event: AppEvent) -> tuple[Model, Effect]:
    """Apply ``event`` to ``model``.

    Returns:
        The new model and the effect to execute.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        logger.warning("No handler for %s", describe(event))
        return model, NONE

    if model.pending_shortcut is Shortcut.LEADER and isinstance(event, _LEADER_COMMANDS):
        _clear_shortcut(model)

    effect = handler(model, event)
    if not isinstance(event, QUIET_EVENTS):
        model.needs_render = True
    return model, effect


# =============================================================================
# Text entry
# =============================================================================


@_handles(KeyPressed)
def _on_key(model: Model, event: KeyPressed) -> Effect:
    if model.state is AppState.TEXT_ENTRY:
        model.input.insert_text(event.text)
    return NONE


@_handles(InsertNewline)
def _on_newline(model: Model, event: InsertNewline) -> Effect:
    if model.state is AppState.TEXT_ENTRY:
        model.input.insert_text("\n")
    return NONE


@_handles(Backspace)
def _on_backspace(model: Model, event: Backspace) -> Effect:
    if model.state is AppState.TEXT_ENTRY:
        model.input.delete_before_cursor()
    return NONE


@_handles(MoveCursor)
def _on_move_cursor(model: Model, event: MoveCursor) -> Effect:
    model.input.cursor_position += event.delta
    return NONE


@_handles(ClearInput)
def _on_clear_input(model: Model, event: ClearInput) -> Effect:
    model.input.reset()
    return NONE


@_handles(SubmitInput)
def _on_submit(model: Model, event: SubmitInput) -> Effect:
    if model.state is not AppState.TEXT_ENTRY or not model.input.text.strip():
        return NONE
    if model.client is None:
        model.notice = "Not connected"
        return NONE

    text = model.input.text.strip()
    model.input.reset()
    provider_id, model_id, mode = model.resolve_model()
    message_id = generate_id(IdPrefix.MESSAGE)
    model.scroll_offset = 0

    if model.session is None:
        return CreateSessionAndSend(model.client, message_id, text, provider_id, model_id, mode)
    return SendMessage(model.client, model.session.id, message_id, text, provider_id, model_id, mode)


@_handles(ScrollLog)
def _on_scroll(model: Model, event: ScrollLog) -> Effect:
    model.scroll_offset = max(0, model.scroll_offset + event.delta)
    return NONE


@_handles(CycleMode)
def _on_cycle_mode(model: Model, event: CycleMode) -> Effect:
    if model.modes:
        current = model.mode_index if model.mode_index is not None else -1
        model.mode_index = (current + 1) % len(model.modes)
    return NONE


# =============================================================================
# State transitions
# =============================================================================


def _connect(model: Model) -> Effect:
    model.state = AppState.CONNECTING
    model.error_message = None
    return DiscoverClient()


def _initialize_session(model: Model, client: Any, *, fresh: bool = False) -> Effect:
    model.state = AppState.INITIALIZING_SESSION
    return InitializeSession(client, None if fresh else model.requested_session_id, fresh=fresh)


def _teardown_feed(model: Model) -> Effect:
    model.feed_state = Disconnected()
    return StopEventStream()


def _fail(model: Model, message: str) -> Effect:
    logger.warning("%s", message)
    model.state = AppState.CONNECTION_ERROR
    model.error_message = message
    return NONE


@_handles(ChangeState)
def _on_change_state(model: Model, event: ChangeState) -> Effect:
    if event.target is AppState.TEXT_ENTRY and model.session is None:
        if model.client is None:
            return _connect(model)
        return _initialize_session(model, model.client)
    if event.target is AppState.QUIT:
        return _on_quit(model, Quit())
    model.state = event.target
    return NONE


@_handles(InitializeClient, RetryConnection)
def _on_initialize_client(model: Model, event: AppEvent) -> Effect:
    return batch(_teardown_feed(model), _connect(model))


@_handles(Quit)
def _on_quit(model: Model, event: Quit) -> Effect:
    model.state = AppState.QUIT
    return _teardown_feed(model)


@_handles(ClientConnected)
def _on_client_connected(model: Model, event: ClientConnected) -> Effect:
    previous = model.client
    model.client = event.client
    model.notice = None
    close = CloseClient(previous) if previous is not None and previous is not event.client else NONE
    return batch(close, LoadModes(event.client), _initialize_session(model, event.client))


@_handles(ClientClosed)
def _on_client_closed(model: Model, event: ClientClosed) -> Effect:
    return NONE


@_handles(ClientConnectionFailed)
def _on_client_connection_failed(model: Model, event: ClientConnectionFailed) -> Effect:
    return _fail(model, f"Failed to connect to OpenCode server: {event.error}")


@_handles(SessionReady)
def _on_session_ready(model: Model, event: SessionReady) -> Effect:
    if model.client is None:
        logger.warning("Ignoring session %s: not connected", event.session.id)
        return NONE
    teardown = _teardown_feed(model)
    model.session = event.session
    model.requested_session_id = None
    model.store.set_session(event.session.id)
    model.state = AppState.TEXT_ENTRY
    model.scroll_offset = 0
    logger.info("Session ready: %s", event.session.id)
    return batch(teardown, LoadMessages(model.client, event.session.id), StartEventStream(model.client))


@_handles(SessionInitializationFailed)
def _on_session_init_failed(model: Model, event: SessionInitializationFailed) -> Effect:
    return _fail(model, f"Failed to initialize session: {event.error}")


@_handles(SessionCreatedWithMessage)
def _on_session_created_with_message(model: Model, event: SessionCreatedWithMessage) -> Effect:
    if model.client is None:
        logger.warning("Ignoring session %s: not connected", event.session.id)
        return NONE
    teardown = _teardown_feed(model)
    model.session = event.session
    model.store.set_session(event.session.id)
    model.state = AppState.TEXT_ENTRY
    return batch(
        teardown,
        LoadMessages(model.client, event.session.id),
        StartEventStream(model.client),
        SendMessage(
            model.client,
            event.session.id,
            event.message_id,
            event.text,
            event.provider_id,
            event.model_id,
            event.mode,
        ),
    )


@_handles(SessionCreationFailed)
def _on_session_creation_failed(model: Model, event: SessionCreationFailed) -> Effect:
    return _fail(model, f"Failed to create session: {event.error}")


@_handles(NewSession)
def _on_new_session(model: Model, event: NewSession) -> Effect:
    if model.client is None:
        return NONE
    model.session = None
    model.requested_session_id = None
    return batch(_teardown_feed(model), _initialize_session(model, model.client, fresh=True))


# =============================================================================
# Background results
# =============================================================================


@_handles(MessagesLoaded)
def _on_messages_loaded(model: Model, event: MessagesLoaded) -> Effect:
    if event.session_id != model.session_id:
        logger.debug("Discarding history for inactive session %s", event.session_id)
        return NONE
    model.store.load_snapshot(event.messages)
    return NONE


@_handles(MessagesLoadFailed)
def _on_messages_load_failed(model: Model, event: MessagesLoadFailed) -> Effect:
    if event.session_id == model.session_id:
        model.notice = f"Failed to load messages: {event.error}"
    return NONE


@_handles(UserMessageSent)
def _on_user_message_sent(model: Model, event: UserMessageSent) -> Effect:
    logger.info("Message %s sent to session %s", event.message_id, event.session_id)
    return NONE


@_handles(UserMessageSendFailed)
def _on_user_message_send_failed(model: Model, event: UserMessageSendFailed) -> Effect:
    model.notice = f"Failed to send message: {event.error}"
    return NONE


@_handles(ModesLoaded)
def _on_modes_loaded(model: Model, event: ModesLoaded) -> Effect:
    model.modes = list(event.modes)
    if not model.modes:
        model.mode_index = None
        return NONE
    names = [mode.name for mode in model.modes]
    preferred = model.config.model.mode
    model.mode_index = names.index(preferred) if preferred in names else 0
    return NONE


@_handles(ModesLoadFailed)
def _on_modes_load_failed(model: Model, event: ModesLoadFailed) -> Effect:
    logger.warning("Failed to load modes: %s", event.error)
    return NONE


@_handles(SessionsLoaded)
def _on_sessions_loaded(model: Model, event: SessionsLoaded) -> Effect:
    if model.notice == "Loading sessions...":
        model.notice = None
    if not event.sessions:
        model.notice = "No sessions yet"
        return NONE
    ids = [session.id for session in event.sessions]
    selected = ids.index(model.session_id) if model.session_id in ids else 0
    model.selector = SelectableList("Sessions", event.sessions, selected=selected)
    return NONE


@_handles(SessionsLoadFailed)
def _on_sessions_load_failed(model: Model, event: SessionsLoadFailed) -> Effect:
    model.notice = f"Failed to load sessions: {event.error}"
    return NONE


@_handles(SessionAborted)
def _on_session_aborted(model: Model, event: SessionAborted) -> Effect:
    model.notice = "Aborted"
    return NONE


@_handles(SessionAbortFailed)
def _on_session_abort_failed(model: Model, event: SessionAbortFailed) -> Effect:
    model.notice = f"Failed to abort: {event.error}"
    return NONE


@_handles(TaskFailed)
def _on_task_failed(model: Model, event: TaskFailed) -> Effect:
    model.notice = f"Background task failed: {event.error}"
    return NONE


# =============================================================================
# Session selector
# =============================================================================


@_handles(ShowSessionSelector)
def _on_show_session_selector(model: Model, event: ShowSessionSelector) -> Effect:
    if model.client is None:
        return NONE
    model.notice = "Loading sessions..."
    return LoadSessions(model.client)


@_handles(SelectorMove)
def _on_selector_move(model: Model, event: SelectorMove) -> Effect:
    if model.selector is not None:
        model.selector.move(event.delta)
    return NONE


@_handles(SelectorClose)
def _on_selector_close(model: Model, event: SelectorClose) -> Effect:
    model.selector = None
    return NONE


@_handles(SelectorConfirm)
def _on_selector_confirm(model: Model, event: SelectorConfirm) -> Effect:
    selector, model.selector = model.selector, None
    chosen = selector.selected if selector is not None else None
    if chosen is None or model.client is None or chosen.id == model.session_id:
        return NONE

    logger.info("Switching to session %s", chosen.id)
    model.requested_session_id = chosen.id
    model.session = None
    return batch(_teardown_feed(model), _initialize_session(model, model.client))


# =============================================================================
# Event feed
# =============================================================================


def _apply_server_event(model: Model, event: Any) -> None:
    store = model.store
    if event.session_id is not None and event.session_id != model.session_id:
        return

    if isinstance(event, MessageUpdated):
        if store.upsert_message(event.info) and isinstance(event.info, AssistantMessage) and event.info.is_complete:
            store.mark_complete(event.info.id)
    elif isinstance(event, MessagePartUpdated):
        store.upsert_part(event.part)
    elif isinstance(event, MessageRemoved):
        store.remove_message(event.session_id, event.message_id)
    elif isinstance(event, SessionIdle):
        for message_id in store.streaming_message_ids():
            store.mark_complete(message_id)
    elif isinstance(event, SessionUpdated):
        model.session = event.info
    elif isinstance(event, SessionError):
        model.notice = f"Session error: {event.message}"


@_handles(EventReceived)
def _on_event_received(model: Model, event: EventReceived) -> Effect:
    _apply_server_event(model, event.event)
    return NONE


@_handles(EventStreamConnected)
def _on_event_stream_connected(model: Model, event: EventStreamConnected) -> Effect:
    previous = model.feed_state
    model.feed_state = on_stream_connected(previous)
    if isinstance(previous, Reconnecting):
        model.notice = "Event stream reconnected"
    return NONE


@_handles(EventStreamLost)
def _on_event_stream_lost(model: Model, event: EventStreamLost) -> Effect:
    feed = model.config.feed
    model.feed_state = on_stream_error(model.feed_state, event.reason, feed.max_reconnect_attempts)

    if isinstance(model.feed_state, Reconnecting) and model.client is not None:
        return ReconnectEventStream(model.client, model.feed_state.attempt, feed.reconnect_delay)
    if isinstance(model.feed_state, Failed):
        model.notice = f"Event stream disconnected: {model.feed_state.error}"
    return NONE


@_handles(EventStreamReconnecting)
def _on_event_stream_reconnecting(model: Model, event: EventStreamReconnecting) -> Effect:
    model.notice = f"Reconnecting event stream ({event.attempt}/{model.config.feed.max_reconnect_attempts})..."
    return NONE


@_handles(RestartEventStream)
def _on_restart_event_stream(model: Model, event: RestartEventStream) -> Effect:
    if model.client is None or model.session is None:
        return NONE
    model.notice = None
    return batch(_teardown_feed(model), StartEventStream(model.client))


# =============================================================================
# Loop signals
# =============================================================================


@_handles(MessagesViewed)
def _on_messages_viewed(model: Model, event: MessagesViewed) -> Effect:
    if event.printed:
        model.printed_count += model.store.mark_printed(event.printed)
    model.needs_render = False
    return NONE


@_handles(ActiveTaskCount)
def _on_active_task_count(model: Model, event: ActiveTaskCount) -> Effect:
    model.active_task_count = event.count
    return NONE


@_handles(LogRecorded)
def _on_log_recorded(model: Model, event: LogRecorded) -> Effect:
    model.recent_logs.append(f"{event.level}: {event.message}")
    return NONE


# =============================================================================
# Terminal
# =============================================================================


@_handles(TerminalResize)
def _on_terminal_resize(model: Model, event: TerminalResize) -> Effect:
    model.terminal_size = (event.width, event.height)
    if model.inline and model.state is AppState.TEXT_ENTRY:
        return batch(AutoResize(), ScrollPastHeight())
    return AutoResize()


@_handles(ChangeInline)
def _on_change_inline(model: Model, event: ChangeInline) -> Effect:
    model.inline = not model.inline
    model.scroll_offset = 0
    return RebootTerminal(model.inline, model.inline_height)


@_handles(ChangeInlineHeight)
def _on_change_inline_height(model: Model, event: ChangeInlineHeight) -> Effect:
    model.inline_height = max(MIN_INLINE_HEIGHT, event.height)
    return ResizeInline(model.inline_height) if model.inline else NONE


# =============================================================================
# Shortcuts
# =============================================================================


_SHORTCUT_HINTS = {
    Shortcut.QUIT: "Press Ctrl+C again to quit",
    Shortcut.ABORT: "Press Esc again to abort",
    Shortcut.LEADER: "Ctrl+X: l sessions · n new · r reconnect · Tab inline · +/- height · q quit",
}


def _clear_shortcut(model: Model) -> None:
    model.pending_shortcut = None
    if model.notice in _SHORTCUT_HINTS.values():
        model.notice = None


def _arm(model: Model, shortcut: Shortcut, at: float) -> Effect:
    model.pending_shortcut = shortcut
    model.shortcut_deadline = at + model.config.keys.repeat_shortcut_timeout
    model.notice = _SHORTCUT_HINTS[shortcut]
    return NONE


@_handles(ShortcutPressed)
def _on_shortcut(model: Model, event: ShortcutPressed) -> Effect:
    if event.shortcut is Shortcut.QUIT:
        if model.shortcut_active(Shortcut.QUIT, event.at):
            _clear_shortcut(model)
            return _on_quit(model, Quit())
        return _arm(model, Shortcut.QUIT, event.at)

    if event.shortcut is Shortcut.ABORT:
        if model.selector is not None:
            model.selector = None
            return NONE
        if model.client is None or model.session is None:
            return NONE
        if model.shortcut_active(Shortcut.ABORT, event.at):
            _clear_shortcut(model)
            return AbortSession(model.client, model.session.id)
        return _arm(model, Shortcut.ABORT, event.at)

    return _arm(model, Shortcut.LEADER, event.at)


@_handles(ShortcutExpired)
def _on_shortcut_expired(model: Model, event: ShortcutExpired) -> Effect:
    if model.pending_shortcut is not None and event.at > model.shortcut_deadline:
        _clear_shortcut(model)
    return NONE


@_handles(ShortcutCancelled)
def _on_shortcut_cancelled(model: Model, event: ShortcutCancelled) -> Effect:
    _clear_shortcut(model)
    return NONE
