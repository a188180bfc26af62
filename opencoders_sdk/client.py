"""Async REST client for the OpenCode server."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from opencoders_sdk._config import ClientSettings
from opencoders_sdk._logger import get_logger
from opencoders_sdk.discovery import discover_server
from opencoders_sdk.errors import (
    ApiError,
    HttpError,
    InvalidRequestError,
    SerializationError,
    ServerTimeoutError,
    SessionNotFoundError,
)
from opencoders_sdk.ids import IdPrefix, generate_id
from opencoders_sdk.models import (
    AssistantMessage,
    MessageAdapter,
    MessageSnapshot,
    ModeInfo,
    SessionAdapter,
    SessionInfo,
    SessionListAdapter,
    SnapshotListAdapter,
    UserMessage,
)
from opencoders_sdk.session_manager import SessionManager
from opencoders_sdk.stream import EventStream

logger = get_logger(__name__)


class OpenCodeClient:
    """Client for one OpenCode server.

    Args:
        base_url: Server URL, e.g. ``http://127.0.0.1:4096``.
        http_client: Optional preconfigured ``httpx.AsyncClient``. The client
            is closed by :meth:`aclose` only when it was created here.
        settings: Connection settings. Defaults to environment-derived settings.

    Example:
        async with await OpenCodeClient.discover() as client:
            session = await client.get_or_create_session()
            history = await client.get_messages(session.id)
    """

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._base_url = base_url.rstrip("/")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self._settings.request_timeout))
        self._sessions = SessionManager(self)

    @classmethod
    async def discover(cls, settings: ClientSettings | None = None) -> OpenCodeClient:
        """Locate a running server and return a client connected to it.

        Raises:
            ServerNotFoundError: No reachable server was found.
        """
        settings = settings or ClientSettings()
        url = await discover_server(settings)
        logger.info("Connected to OpenCode server at %s", url)
        return cls(url, settings=settings)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> OpenCodeClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(self, method: str, path: str, *, json: Any = None, timeout: httpx.Timeout | None = None) -> Any:
        try:
            response = await self._http.request(
                method,
                self._url(path),
                json=json,
                timeout=httpx.USE_CLIENT_DEFAULT if timeout is None else timeout,
            )
        except httpx.TimeoutException as e:
            raise ServerTimeoutError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise HttpError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_message(response))
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SerializationError(f"{method} {path} returned invalid JSON") from e

    @staticmethod
    def _validate(adapter: TypeAdapter[Any], data: Any, what: str) -> Any:
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise SerializationError(f"Invalid {what}: {e}") from e

    # -------------------------------------------------------------------------
    # App and configuration
    # -------------------------------------------------------------------------

    async def get_app_info(self) -> dict[str, Any]:
        return await self._request("GET", "/app") or {}

    async def test_connection(self) -> None:
        await self.get_app_info()

    async def get_config(self) -> dict[str, Any]:
        return await self._request("GET", "/config") or {}

    async def get_modes(self) -> list[ModeInfo]:
        """Return the agent modes configured on the server, in server order."""
        config = await self.get_config()
        entries = config.get("agent") or config.get("mode") or {}
        return [
            ModeInfo.from_config(name, entry)
            for name, entry in entries.items()
            if isinstance(entry, dict) and not entry.get("disable")
        ]

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(self) -> SessionInfo:
        data = await self._request("POST", "/session", json={})
        return self._validate(SessionAdapter, data, "session")

    async def list_sessions(self) -> list[SessionInfo]:
        data = await self._request("GET", "/session")
        return self._validate(SessionListAdapter, data or [], "session list")

    async def delete_session(self, session_id: str) -> bool:
        return bool(await self._request("DELETE", f"/session/{session_id}"))

    async def abort_session(self, session_id: str) -> bool:
        return bool(await self._request("POST", f"/session/{session_id}/abort"))

    @property
    def current_session_id(self) -> str | None:
        return self._sessions.current_session_id

    async def get_or_create_session(self) -> SessionInfo:
        return await self._sessions.get_or_create_session()

    async def create_new_session(self) -> SessionInfo:
        return await self._sessions.create_new_session()

    async def switch_to_session(self, session_id: str) -> SessionInfo:
        return await self._sessions.switch_to_session(session_id)

    def clear_current_session(self) -> None:
        self._sessions.clear_current_session()

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def get_messages(self, session_id: str) -> list[MessageSnapshot]:
        """Return the full history of a session, oldest first.

        Raises:
            SessionNotFoundError: The server does not know the session.
        """
        try:
            data = await self._request("GET", f"/session/{session_id}/message")
        except ApiError as e:
            if e.status == 404:
                raise SessionNotFoundError(session_id) from e
            raise
        snapshots = self._validate(SnapshotListAdapter, data or [], "message history")
        logger.info("Retrieved %d messages for session %s", len(snapshots), session_id)
        return snapshots

    async def send_message(
        self,
        session_id: str,
        message_id: str,
        text: str,
        provider_id: str,
        model_id: str,
        mode: str | None = None,
    ) -> UserMessage | AssistantMessage:
        """Send user text to a session.

        The assistant's answer streams in through the event feed; the return
        value is the server's acknowledgement.

        Raises:
            InvalidRequestError: ``text``, ``provider_id`` or ``model_id`` is empty.
        """
        if not text.strip():
            raise InvalidRequestError("Message text is empty")
        if not provider_id or not model_id:
            raise InvalidRequestError("provider_id and model_id are required")

        body: dict[str, Any] = {
            "messageID": message_id,
            "providerID": provider_id,
            "modelID": model_id,
            "parts": [{"id": generate_id(IdPrefix.PART), "type": "text", "text": text}],
        }
        if mode:
            body["mode"] = mode

        logger.info("Sending message to session %s", session_id)
        # The server replies only when the assistant turn ends.
        timeout = httpx.Timeout(self._settings.request_timeout, read=None)
        data = await self._request("POST", f"/session/{session_id}/message", json=body, timeout=timeout)
        if isinstance(data, dict) and "info" in data:
            data = data["info"]
        return self._validate(MessageAdapter, data, "message")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def subscribe_events(self) -> EventStream:
        """Open the server event stream.

        Raises:
            EventStreamError: The subscription could not be established.
        """
        stream = EventStream(self._http, self._url("/event"))
        await stream.connect()
        return stream


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        for key in ("message", "error", "name"):
            if isinstance(data.get(key), str):
                return data[key]
        nested = data.get("data")
        if isinstance(nested, dict) and isinstance(nested.get("message"), str):
            return nested["message"]
    return response.text


__all__ = ["OpenCodeClient"]
