"""Wire models for the OpenCode server API.

Field names are snake_case in Python and aliased to the server's JSON
keys (``sessionID``, ``messageID``, ``providerID``, ...). Unknown fields
are ignored so newer servers stay readable.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TimeInfo(WireModel):
    created: float = 0
    updated: float | None = None
    completed: float | None = None


class TokenUsage(WireModel):
    input: int = 0
    output: int = 0
    reasoning: int = 0


# =============================================================================
# Sessions
# =============================================================================


class SessionInfo(WireModel):
    id: str
    title: str = ""
    version: str = ""
    parent_id: str | None = Field(default=None, alias="parentID")
    time: TimeInfo = Field(default_factory=TimeInfo)

    def render_row(self) -> str:
        return f"{self.title or 'Untitled'}  {self.id}"

    def render_line(self) -> str:
        return self.title or self.id


# =============================================================================
# Messages
# =============================================================================


class UserMessage(WireModel):
    id: str
    session_id: str = Field(alias="sessionID")
    role: Literal["user"] = "user"
    time: TimeInfo = Field(default_factory=TimeInfo)


class AssistantMessage(WireModel):
    id: str
    session_id: str = Field(alias="sessionID")
    role: Literal["assistant"] = "assistant"
    time: TimeInfo = Field(default_factory=TimeInfo)
    provider_id: str = Field(default="", alias="providerID")
    model_id: str = Field(default="", alias="modelID")
    mode: str | None = None
    cost: float = 0
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    error: dict[str, Any] | None = None

    @property
    def is_complete(self) -> bool:
        return self.time.completed is not None


Message = Annotated[UserMessage | AssistantMessage, Field(discriminator="role")]


# =============================================================================
# Parts
# =============================================================================


class PartBase(WireModel):
    id: str
    session_id: str = Field(alias="sessionID")
    message_id: str = Field(alias="messageID")


class TextPart(PartBase):
    type: Literal["text"] = "text"
    text: str = ""
    synthetic: bool = False


class ToolStatePending(WireModel):
    status: Literal["pending"] = "pending"


class ToolStateRunning(WireModel):
    status: Literal["running"] = "running"
    input: dict[str, Any] = Field(default_factory=dict)
    title: str | None = None
    time: TimeInfo = Field(default_factory=TimeInfo)


class ToolStateCompleted(WireModel):
    status: Literal["completed"] = "completed"
    input: dict[str, Any] = Field(default_factory=dict)
    output: str = ""
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    time: TimeInfo = Field(default_factory=TimeInfo)


class ToolStateError(WireModel):
    status: Literal["error"] = "error"
    input: dict[str, Any] = Field(default_factory=dict)
    error: str = ""
    time: TimeInfo = Field(default_factory=TimeInfo)


ToolState = Annotated[
    ToolStatePending | ToolStateRunning | ToolStateCompleted | ToolStateError,
    Field(discriminator="status"),
]


class ToolPart(PartBase):
    type: Literal["tool"] = "tool"
    call_id: str = Field(default="", alias="callID")
    tool: str
    state: ToolState = Field(default_factory=ToolStatePending)


class FilePart(PartBase):
    type: Literal["file"] = "file"
    mime: str
    filename: str | None = None
    url: str


class StepStartPart(PartBase):
    type: Literal["step-start"] = "step-start"


class StepFinishPart(PartBase):
    type: Literal["step-finish"] = "step-finish"
    cost: float = 0
    tokens: TokenUsage = Field(default_factory=TokenUsage)


class SnapshotPart(PartBase):
    type: Literal["snapshot"] = "snapshot"
    snapshot: str


Part = Annotated[
    TextPart | ToolPart | FilePart | StepStartPart | StepFinishPart | SnapshotPart,
    Field(discriminator="type"),
]


class MessageSnapshot(WireModel):
    """A message with all of its parts, as returned by history loads."""

    info: Message
    parts: list[Part] = Field(default_factory=list)


# =============================================================================
# Modes
# =============================================================================


class ModeInfo(WireModel):
    """A named agent mode and the model it pins, if any."""

    name: str
    provider_id: str | None = None
    model_id: str | None = None

    @classmethod
    def from_config(cls, name: str, entry: dict[str, Any]) -> ModeInfo:
        """Build from a server config entry whose model is "provider/model"."""
        model = entry.get("model")
        if isinstance(model, str) and "/" in model:
            provider_id, model_id = model.split("/", 1)
            return cls(name=name, provider_id=provider_id, model_id=model_id)
        return cls(name=name)


MessageAdapter = TypeAdapter(Message)
PartAdapter = TypeAdapter(Part)
SessionAdapter = TypeAdapter(SessionInfo)
SessionListAdapter = TypeAdapter(list[SessionInfo])
SnapshotListAdapter = TypeAdapter(list[MessageSnapshot])

__all__ = [
    "AssistantMessage",
    "FilePart",
    "Message",
    "MessageAdapter",
    "MessageSnapshot",
    "ModeInfo",
    "Part",
    "PartAdapter",
    "SessionAdapter",
    "SessionInfo",
    "SessionListAdapter",
    "SnapshotListAdapter",
    "SnapshotPart",
    "StepFinishPart",
    "StepStartPart",
    "TextPart",
    "TimeInfo",
    "TokenUsage",
    "ToolPart",
    "ToolState",
    "ToolStateCompleted",
    "ToolStateError",
    "ToolStatePending",
    "ToolStateRunning",
    "UserMessage",
]
