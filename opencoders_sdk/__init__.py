"""opencoders-sdk: async client for the OpenCode server."""

from opencoders_sdk._config import ClientSettings
from opencoders_sdk.client import OpenCodeClient
from opencoders_sdk.errors import OpenCodeError
from opencoders_sdk.events import ServerEvent, parse_event
from opencoders_sdk.ids import IdPrefix, generate_id
from opencoders_sdk.stream import EventStream

__all__ = [
    "ClientSettings",
    "EventStream",
    "IdPrefix",
    "OpenCodeClient",
    "OpenCodeError",
    "ServerEvent",
    "generate_id",
    "parse_event",
]
