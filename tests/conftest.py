"""Shared fixtures for opencoders_sdk tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
from payloads import BASE_URL

from opencoders_sdk import OpenCodeClient
from opencoders_sdk._config import ClientSettings


@pytest.fixture
def settings() -> ClientSettings:
    """Settings that validate once, immediately, with no retry delay."""
    return ClientSettings(
        _env_file=None,
        server_url=None,
        validation_retries=1,
        validation_retry_delay=0,
        validation_timeout=1,
    )


@pytest.fixture
async def client(settings: ClientSettings) -> AsyncIterator[OpenCodeClient]:
    async with httpx.AsyncClient() as http:
        yield OpenCodeClient(BASE_URL, http_client=http, settings=settings)
