"""Tests for opencoders_sdk.errors module."""

import pytest

from opencoders_sdk.errors import (
    ApiError,
    ConnectionTimeoutError,
    EventStreamError,
    HttpError,
    InvalidRequestError,
    OpenCodeError,
    SerializationError,
    ServerNotFoundError,
    SessionNotFoundError,
)


@pytest.mark.parametrize(
    ("status", "retryable", "client_error"),
    [
        (400, False, True),
        (404, False, True),
        (429, True, True),
        (500, True, False),
        (503, True, False),
    ],
)
def test_api_error_classification(status: int, retryable: bool, client_error: bool) -> None:
    error = ApiError(status, "nope")
    assert error.is_retryable is retryable
    assert error.is_client_error is client_error
    assert str(error) == f"API error {status}: nope"


def test_transport_errors_are_retryable() -> None:
    assert HttpError("reset").is_retryable
    assert EventStreamError("lost").is_retryable
    assert ConnectionTimeoutError("http://x").is_retryable
    assert not SerializationError("bad").is_retryable


def test_not_found_errors_carry_ids() -> None:
    error = SessionNotFoundError("ses_42")
    assert error.session_id == "ses_42"
    assert error.is_client_error
    assert "ses_42" in str(error)
    assert InvalidRequestError("empty").is_client_error


def test_all_errors_share_base() -> None:
    for error in (HttpError("x"), ApiError(500, "x"), ServerNotFoundError(), SessionNotFoundError("s")):
        assert isinstance(error, OpenCodeError)
    assert str(ServerNotFoundError()) == "No running OpenCode server found"
