"""Tests for opencoders_sdk.events module."""

import pytest
from payloads import assistant_payload, session_payload, text_part_payload

from opencoders_sdk.errors import SerializationError
from opencoders_sdk.events import (
    MessagePartUpdated,
    MessageRemoved,
    MessageUpdated,
    OtherEvent,
    SessionError,
    SessionIdle,
    SessionUpdated,
    parse_event,
)
from opencoders_sdk.models import AssistantMessage, TextPart


def test_parse_message_updated() -> None:
    event = parse_event({"type": "message.updated", "properties": {"info": assistant_payload()}})
    assert isinstance(event, MessageUpdated)
    assert isinstance(event.info, AssistantMessage)
    assert event.session_id == "ses_1"


def test_parse_part_updated() -> None:
    event = parse_event({"type": "message.part.updated", "properties": {"part": text_part_payload(text="hi")}})
    assert isinstance(event, MessagePartUpdated)
    assert isinstance(event.part, TextPart)
    assert event.part.text == "hi"
    assert event.session_id == "ses_1"


def test_parse_message_removed() -> None:
    event = parse_event({"type": "message.removed", "properties": {"sessionID": "ses_1", "messageID": "msg_9"}})
    assert isinstance(event, MessageRemoved)
    assert event.message_id == "msg_9"


def test_parse_session_events() -> None:
    updated = parse_event({"type": "session.updated", "properties": {"info": session_payload(title="New")}})
    assert isinstance(updated, SessionUpdated)
    assert updated.session_id == "ses_1"

    idle = parse_event({"type": "session.idle", "properties": {"sessionID": "ses_1"}})
    assert isinstance(idle, SessionIdle)
    assert idle.session_id == "ses_1"


def test_session_error_message() -> None:
    event = parse_event({
        "type": "session.error",
        "properties": {"sessionID": "ses_1", "error": {"name": "ProviderAuthError", "data": {"message": "bad key"}}},
    })
    assert isinstance(event, SessionError)
    assert event.message == "bad key"

    bare = parse_event({"type": "session.error", "properties": {}})
    assert isinstance(bare, SessionError)
    assert bare.session_id is None
    assert bare.message == "unknown error"


def test_unknown_type_becomes_other_event() -> None:
    event = parse_event({"type": "file.edited", "properties": {"file": "a.py", "sessionID": "ses_1"}})
    assert isinstance(event, OtherEvent)
    assert event.type == "file.edited"
    assert event.session_id == "ses_1"

    no_props = parse_event({"type": "server.connected"})
    assert isinstance(no_props, OtherEvent)
    assert no_props.session_id is None


def test_missing_type_raises() -> None:
    with pytest.raises(SerializationError):
        parse_event({"properties": {}})


def test_malformed_known_event_raises() -> None:
    with pytest.raises(SerializationError):
        parse_event({"type": "message.updated", "properties": {"info": {"role": "assistant"}}})
