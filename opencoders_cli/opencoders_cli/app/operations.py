"""Background operations.

Each operation effect maps to one coroutine that talks to the server and
resolves to exactly one application event. Expected failures become
``*Failed`` events; anything else escapes to the task supervisor, which
reports it as :class:`~opencoders_cli.events.TaskFailed`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from opencoders_sdk import OpenCodeClient
from opencoders_sdk._config import ClientSettings
from opencoders_sdk.errors import OpenCodeError

from opencoders_cli.app.effects import (
    AbortSession,
    CloseClient,
    CreateSessionAndSend,
    DiscoverClient,
    InitializeSession,
    LoadMessages,
    LoadModes,
    LoadSessions,
    Operation,
    SendMessage,
)
from opencoders_cli.events import (
    AppEvent,
    ClientClosed,
    ClientConnected,
    ClientConnectionFailed,
    MessagesLoaded,
    MessagesLoadFailed,
    ModesLoaded,
    ModesLoadFailed,
    SessionAborted,
    SessionAbortFailed,
    SessionCreatedWithMessage,
    SessionCreationFailed,
    SessionInitializationFailed,
    SessionReady,
    SessionsLoaded,
    SessionsLoadFailed,
    UserMessageSendFailed,
    UserMessageSent,
)
from opencoders_cli.logging import get_logger

logger = get_logger(__name__)

Discover = Callable[[ClientSettings], Awaitable[OpenCodeClient]]
OperationHandler = Callable[[Any], Coroutine[Any, Any, AppEvent]]


class OperationRunner:
    """Turns operation effects into coroutines.

    Args:
        settings: Client settings used for server discovery.
        discover: Replaces :meth:`OpenCodeClient.discover`, mostly for tests.
    """

    def __init__(self, settings: ClientSettings | None = None, discover: Discover | None = None) -> None:
        self._settings = settings or ClientSettings()
        self._discover = discover or OpenCodeClient.discover
        self._handlers: dict[type[Operation], OperationHandler] = {
            DiscoverClient: self._discover_client,
            CloseClient: self._close_client,
            InitializeSession: self._initialize_session,
            CreateSessionAndSend: self._create_session_and_send,
            LoadSessions: self._load_sessions,
            LoadModes: self._load_modes,
            LoadMessages: self._load_messages,
            SendMessage: self._send_message,
            AbortSession: self._abort_session,
        }

    def run(self, operation: Operation) -> Coroutine[Any, Any, AppEvent]:
        """Coroutine performing ``operation``.

        Raises:
            TypeError: ``operation`` is not a known operation.
        """
        handler = self._handlers.get(type(operation))
        if handler is None:
            raise TypeError(f"Unknown operation: {type(operation).__name__}")
        return handler(operation)

    async def _discover_client(self, op: DiscoverClient) -> AppEvent:
        try:
            client = await self._discover(self._settings)
        except OpenCodeError as e:
            return ClientConnectionFailed(error=str(e))
        try:
            await client.test_connection()
        except OpenCodeError as e:
            await client.aclose()
            return ClientConnectionFailed(error=str(e))
        except BaseException:
            await client.aclose()
            raise
        return ClientConnected(client=client)

    async def _close_client(self, op: CloseClient) -> AppEvent:
        await op.client.aclose()
        return ClientClosed()

    async def _initialize_session(self, op: InitializeSession) -> AppEvent:
        client = op.client
        try:
            if op.fresh:
                client.clear_current_session()
                session = await client.create_new_session()
            elif op.session_id is not None:
                session = await client.switch_to_session(op.session_id)
            else:
                session = await client.get_or_create_session()
        except OpenCodeError as e:
            return SessionInitializationFailed(error=str(e))
        return SessionReady(session=session)

    async def _create_session_and_send(self, op: CreateSessionAndSend) -> AppEvent:
        try:
            session = await op.client.create_new_session()
        except OpenCodeError as e:
            return SessionCreationFailed(error=str(e))
        return SessionCreatedWithMessage(
            session=session,
            message_id=op.message_id,
            text=op.text,
            provider_id=op.provider_id,
            model_id=op.model_id,
            mode=op.mode,
        )

    async def _load_sessions(self, op: LoadSessions) -> AppEvent:
        try:
            sessions = await op.client.list_sessions()
        except OpenCodeError as e:
            return SessionsLoadFailed(error=str(e))
        sessions.sort(key=lambda s: s.time.updated or s.time.created or 0, reverse=True)
        return SessionsLoaded(sessions=sessions)

    async def _load_modes(self, op: LoadModes) -> AppEvent:
        try:
            modes = await op.client.get_modes()
        except OpenCodeError as e:
            return ModesLoadFailed(error=str(e))
        return ModesLoaded(modes=modes)

    async def _load_messages(self, op: LoadMessages) -> AppEvent:
        try:
            messages = await op.client.get_messages(op.session_id)
        except OpenCodeError as e:
            return MessagesLoadFailed(session_id=op.session_id, error=str(e))
        return MessagesLoaded(session_id=op.session_id, messages=messages)

    async def _send_message(self, op: SendMessage) -> AppEvent:
        try:
            await op.client.send_message(
                op.session_id,
                op.message_id,
                op.text,
                op.provider_id,
                op.model_id,
                op.mode,
            )
        except OpenCodeError as e:
            logger.warning("Send failed: %s", e)
            return UserMessageSendFailed(error=str(e))
        return UserMessageSent(session_id=op.session_id, message_id=op.message_id)

    async def _abort_session(self, op: AbortSession) -> AppEvent:
        try:
            await op.client.abort_session(op.session_id)
        except OpenCodeError as e:
            return SessionAbortFailed(error=str(e))
        return SessionAborted(session_id=op.session_id)
