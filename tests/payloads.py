"""JSON payload builders shaped like OpenCode server responses."""

from __future__ import annotations

from typing import Any

BASE_URL = "http://opencode.test"


def session_payload(session_id: str = "ses_1", title: str = "Session", updated: float = 2) -> dict[str, Any]:
    return {"id": session_id, "title": title, "version": "0.1", "time": {"created": 1, "updated": updated}}


def user_payload(message_id: str = "msg_1", session_id: str = "ses_1") -> dict[str, Any]:
    return {"id": message_id, "sessionID": session_id, "role": "user", "time": {"created": 1}}


def assistant_payload(
    message_id: str = "msg_2", session_id: str = "ses_1", completed: float | None = None
) -> dict[str, Any]:
    time: dict[str, Any] = {"created": 2}
    if completed is not None:
        time["completed"] = completed
    return {
        "id": message_id,
        "sessionID": session_id,
        "role": "assistant",
        "time": time,
        "providerID": "anthropic",
        "modelID": "claude-sonnet-4-20250514",
    }


def text_part_payload(
    part_id: str = "prt_1", message_id: str = "msg_1", session_id: str = "ses_1", text: str = "hello"
) -> dict[str, Any]:
    return {"id": part_id, "sessionID": session_id, "messageID": message_id, "type": "text", "text": text}


