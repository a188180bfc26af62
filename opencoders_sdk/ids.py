"""Identifier generation compatible with the OpenCode server.

Ids look like ``msg_0191f3a2b4c5XyZ...``: a type prefix, 12 hex digits
holding the low 48 bits of ``(milliseconds << 12) + counter`` and 14 random
base62 characters. Ascending ids created by one process sort in creation
order; descending ids sort in reverse.
"""

from __future__ import annotations

import secrets
import string
import threading
import time
from enum import Enum

BASE62 = string.digits + string.ascii_uppercase + string.ascii_lowercase
RANDOM_LENGTH = 14

_lock = threading.Lock()
_last_timestamp = 0
_counter = 0


class IdPrefix(str, Enum):
    MESSAGE = "msg"
    SESSION = "ses"
    USER = "usr"
    PART = "prt"
    PERMISSION = "per"


def _next_value() -> int:
    global _last_timestamp, _counter

    now = time.time_ns() // 1_000_000
    with _lock:
        if now != _last_timestamp:
            _last_timestamp = now
            _counter = 1
        else:
            _counter += 1
        return now * 0x1000 + _counter


def generate_id(prefix: IdPrefix | str, descending: bool = False) -> str:
    """Create a new identifier.

    Args:
        prefix: Id type prefix.
        descending: Flip the time component so newer ids sort first.

    Returns:
        The identifier string.
    """
    value = _next_value()
    if descending:
        value = ~value
    time_hex = f"{value & 0xFFFFFFFFFFFF:012x}"
    random_part = "".join(secrets.choice(BASE62) for _ in range(RANDOM_LENGTH))
    return f"{IdPrefix(prefix).value}_{time_hex}{random_part}"


__all__ = ["IdPrefix", "generate_id"]
