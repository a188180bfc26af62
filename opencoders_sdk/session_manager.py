"""Tracks which session the client is working in.

The pointer lives in memory for the lifetime of the process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from opencoders_sdk._logger import get_logger
from opencoders_sdk.errors import SessionNotFoundError
from opencoders_sdk.models import SessionInfo

if TYPE_CHECKING:
    from opencoders_sdk.client import OpenCodeClient

logger = get_logger(__name__)


class SessionManager:
    def __init__(self, client: OpenCodeClient) -> None:
        self._client = client
        self._current_session_id: str | None = None

    @property
    def current_session_id(self) -> str | None:
        return self._current_session_id

    async def get_or_create_session(self) -> SessionInfo:
        """Reuse the remembered session if the server still has it, else create one."""
        if self._current_session_id is not None:
            sessions = await self._client.list_sessions()
            for session in sessions:
                if session.id == self._current_session_id:
                    return session
            logger.info("Session %s no longer exists, creating a new one", self._current_session_id)
        return await self.create_new_session()

    async def create_new_session(self) -> SessionInfo:
        session = await self._client.create_session()
        self._current_session_id = session.id
        return session

    async def switch_to_session(self, session_id: str) -> SessionInfo:
        """Make ``session_id`` current.

        Raises:
            SessionNotFoundError: The server does not list the session.
        """
        sessions = await self._client.list_sessions()
        for session in sessions:
            if session.id == session_id:
                self._current_session_id = session_id
                return session
        raise SessionNotFoundError(session_id)

    def clear_current_session(self) -> None:
        self._current_session_id = None
