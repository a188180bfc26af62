"""Server-pushed events.

The server sends JSON objects of the form ``{"type": ..., "properties": {...}}``.
Known types map to the models below; every other notification becomes an
:class:`OtherEvent` that callers are free to ignore.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, ValidationError

from opencoders_sdk.errors import SerializationError
from opencoders_sdk.models import Message, Part, SessionInfo, WireModel


class MessageUpdated(WireModel):
    type: Literal["message.updated"] = "message.updated"
    info: Message

    @property
    def session_id(self) -> str:
        return self.info.session_id


class MessagePartUpdated(WireModel):
    type: Literal["message.part.updated"] = "message.part.updated"
    part: Part

    @property
    def session_id(self) -> str:
        return self.part.session_id


class MessageRemoved(WireModel):
    type: Literal["message.removed"] = "message.removed"
    session_id: str = Field(alias="sessionID")
    message_id: str = Field(alias="messageID")


class SessionUpdated(WireModel):
    type: Literal["session.updated"] = "session.updated"
    info: SessionInfo

    @property
    def session_id(self) -> str:
        return self.info.id


class SessionIdle(WireModel):
    type: Literal["session.idle"] = "session.idle"
    session_id: str = Field(alias="sessionID")


class SessionError(WireModel):
    type: Literal["session.error"] = "session.error"
    session_id: str | None = Field(default=None, alias="sessionID")
    error: dict[str, Any] | None = None

    @property
    def message(self) -> str:
        if not self.error:
            return "unknown error"
        data = self.error.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return str(self.error.get("name", "unknown error"))


class OtherEvent(WireModel):
    """Any notification the client does not model (file edits, diagnostics, ...)."""

    type: str
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def session_id(self) -> str | None:
        value = self.properties.get("sessionID")
        return value if isinstance(value, str) else None


ServerEvent = (
    MessageUpdated | MessagePartUpdated | MessageRemoved | SessionUpdated | SessionIdle | SessionError | OtherEvent
)

EVENT_TYPES: dict[str, type[WireModel]] = {
    "message.updated": MessageUpdated,
    "message.part.updated": MessagePartUpdated,
    "message.removed": MessageRemoved,
    "session.updated": SessionUpdated,
    "session.idle": SessionIdle,
    "session.error": SessionError,
}


def parse_event(payload: dict[str, Any]) -> ServerEvent:
    """Decode one event payload.

    Raises:
        SerializationError: The payload has a known type but invalid properties,
            or no type at all.
    """
    event_type = payload.get("type")
    if not isinstance(event_type, str):
        raise SerializationError(f"Event without a type: {payload!r}")

    properties = payload.get("properties") or {}
    event_cls = EVENT_TYPES.get(event_type)
    if event_cls is None:
        return OtherEvent(type=event_type, properties=properties)

    try:
        return event_cls.model_validate({**properties, "type": event_type})  # type: ignore[return-value]
    except ValidationError as e:
        raise SerializationError(f"Invalid {event_type} event: {e}") from e


__all__ = [
    "EVENT_TYPES",
    "MessagePartUpdated",
    "MessageRemoved",
    "MessageUpdated",
    "OtherEvent",
    "ServerEvent",
    "SessionError",
    "SessionIdle",
    "SessionUpdated",
    "parse_event",
]
