"""Error types raised by the OpenCode client."""

from __future__ import annotations


class OpenCodeError(Exception):
    """Base class for every error raised by opencoders_sdk."""

    @property
    def is_retryable(self) -> bool:
        """Whether repeating the same call may succeed."""
        return False

    @property
    def is_client_error(self) -> bool:
        """Whether the request itself was at fault."""
        return False


class HttpError(OpenCodeError):
    """Transport-level failure (connection refused, reset, protocol error)."""

    @property
    def is_retryable(self) -> bool:
        return True


class ServerTimeoutError(OpenCodeError):
    """A request did not complete within its timeout."""

    @property
    def is_retryable(self) -> bool:
        return True


class ApiError(OpenCodeError):
    """The server answered with an error status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"API error {status}: {message}")
        self.status = status
        self.message = message

    @property
    def is_retryable(self) -> bool:
        return self.status >= 500 or self.status == 429

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class SerializationError(OpenCodeError):
    """A response body could not be decoded into the expected model."""


class SessionNotFoundError(OpenCodeError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    @property
    def is_client_error(self) -> bool:
        return True


class MessageNotFoundError(OpenCodeError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message not found: {message_id}")
        self.message_id = message_id

    @property
    def is_client_error(self) -> bool:
        return True


class InvalidRequestError(OpenCodeError):
    @property
    def is_client_error(self) -> bool:
        return True


class EventStreamError(OpenCodeError):
    """The event subscription failed or was interrupted."""

    @property
    def is_retryable(self) -> bool:
        return True


class ConfigurationError(OpenCodeError):
    pass


class ConnectionTimeoutError(OpenCodeError):
    """Server validation did not succeed within the allotted attempts."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Timed out connecting to {url}")
        self.url = url

    @property
    def is_retryable(self) -> bool:
        return True


class ServerNotFoundError(OpenCodeError):
    def __init__(self, message: str = "No running OpenCode server found") -> None:
        super().__init__(message)


class ProcessDetectionError(OpenCodeError):
    pass


class ServerStartError(OpenCodeError):
    pass


__all__ = [
    "ApiError",
    "ConfigurationError",
    "ConnectionTimeoutError",
    "EventStreamError",
    "HttpError",
    "InvalidRequestError",
    "MessageNotFoundError",
    "OpenCodeError",
    "ProcessDetectionError",
    "SerializationError",
    "ServerNotFoundError",
    "ServerStartError",
    "ServerTimeoutError",
    "SessionNotFoundError",
]
