"""Conversation store.

Reconciles full history snapshots and incremental message/part events into
one ordered view of the active session.

Each store keeps a mapping from message id to :class:`MessageContainer`
plus a list holding the display order. Both always contain the same ids,
each exactly once. Containers follow the same rule for their parts.

Every mutation that carries a session id is ignored unless it matches the
store's current session. Switching sessions clears everything.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from opencoders_sdk.models import AssistantMessage, Message, MessageSnapshot, Part, TextPart

from opencoders_cli.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MessageContainer:
    """A message, its parts in arrival order and its display flags."""

    info: Message
    parts: dict[str, Part] = field(default_factory=dict)
    part_order: list[str] = field(default_factory=list)
    is_streaming: bool = False
    printed: bool = False
    last_updated: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def role(self) -> str:
        return self.info.role

    @property
    def is_assistant(self) -> bool:
        return isinstance(self.info, AssistantMessage)

    def ordered_parts(self) -> list[Part]:
        return [self.parts[part_id] for part_id in self.part_order]

    def text(self) -> str:
        """Text parts joined with single spaces; other part kinds are skipped."""
        return " ".join(part.text for part in self.ordered_parts() if isinstance(part, TextPart) and part.text)

    def _put_part(self, part: Part) -> None:
        if part.id not in self.parts:
            self.part_order.append(part.id)
        self.parts[part.id] = part


class ConversationStore:
    def __init__(self) -> None:
        self._session_id: str | None = None
        self._messages: dict[str, MessageContainer] = {}
        self._order: list[str] = []
        self._streaming: set[str] = set()

    # -------------------------------------------------------------------------
    # Session scope
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def set_session(self, session_id: str | None) -> None:
        """Make ``session_id`` current, clearing the store if it changes."""
        if session_id == self._session_id:
            return
        self.clear()
        self._session_id = session_id

    def clear(self) -> None:
        self._messages.clear()
        self._order.clear()
        self._streaming.clear()

    def _in_scope(self, session_id: str) -> bool:
        if self._session_id is None or session_id != self._session_id:
            logger.debug("Ignoring update for session %s (current: %s)", session_id, self._session_id)
            return False
        return True

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def load_snapshot(self, messages: Iterable[MessageSnapshot]) -> None:
        """Replace all messages with a history snapshot.

        Loaded messages are neither streaming nor printed. A repeated message
        id keeps its first position and takes the later payload.
        """
        loaded: dict[str, MessageContainer] = {}
        order: list[str] = []
        for snapshot in messages:
            container = MessageContainer(info=snapshot.info)
            for part in snapshot.parts:
                container._put_part(part)
            if snapshot.info.id not in loaded:
                order.append(snapshot.info.id)
            loaded[snapshot.info.id] = container

        self._messages = loaded
        self._order = order
        self._streaming = set()

    def upsert_message(self, info: Message) -> bool:
        """Insert or update message metadata.

        Known messages keep their parts and position. New messages start
        empty, streaming, and go to the end of the order.

        Returns:
            False if the message belongs to another session.
        """
        if not self._in_scope(info.session_id):
            return False

        container = self._messages.get(info.id)
        if container is not None:
            container.info = info
            container.last_updated = datetime.now()
            return True

        self._messages[info.id] = MessageContainer(info=info)
        self._order.append(info.id)
        self._set_streaming(info.id, True)
        return True

    def upsert_part(self, part: Part) -> bool:
        """Insert or replace a part and mark its message streaming.

        Returns:
            False if the part belongs to another session or its message is unknown.
        """
        if not self._in_scope(part.session_id):
            return False

        container = self._messages.get(part.message_id)
        if container is None:
            logger.debug("Dropping part %s for unknown message %s", part.id, part.message_id)
            return False

        container._put_part(part)
        container.last_updated = datetime.now()
        self._set_streaming(container.id, True)
        return True

    def remove_message(self, session_id: str, message_id: str) -> bool:
        if not self._in_scope(session_id) or message_id not in self._messages:
            return False
        del self._messages[message_id]
        self._order.remove(message_id)
        self._streaming.discard(message_id)
        return True

    def mark_complete(self, message_id: str) -> bool:
        if message_id not in self._messages:
            return False
        self._set_streaming(message_id, False)
        return True

    def mark_printed(self, count: int) -> int:
        """Mark the first ``count`` unprinted messages, in order, as printed.

        Returns:
            How many messages were marked.
        """
        marked = 0
        for message_id in self._order:
            if marked >= count:
                break
            container = self._messages[message_id]
            if not container.printed:
                container.printed = True
                marked += 1
        return marked

    def _set_streaming(self, message_id: str, streaming: bool) -> None:
        self._messages[message_id].is_streaming = streaming
        if streaming:
            self._streaming.add(message_id)
        else:
            self._streaming.discard(message_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def get(self, message_id: str) -> MessageContainer | None:
        return self._messages.get(message_id)

    @property
    def message_ids(self) -> list[str]:
        return list(self._order)

    def containers(self) -> list[MessageContainer]:
        return [self._messages[message_id] for message_id in self._order]

    def containers_for_rendering(self) -> list[MessageContainer]:
        """Messages not yet echoed to scrollback, in order."""
        return [container for container in self.containers() if not container.printed]

    def is_streaming(self, message_id: str) -> bool:
        return message_id in self._streaming

    @property
    def streaming_count(self) -> int:
        return len(self._streaming)

    def streaming_message_ids(self) -> list[str]:
        return [message_id for message_id in self._order if message_id in self._streaming]

    @property
    def unprinted_count(self) -> int:
        return sum(1 for container in self._messages.values() if not container.printed)

    def messages_pending_stdout_print(self) -> list[str]:
        """Text of every unprinted message that has any, in display order."""
        texts = (container.text() for container in self.containers_for_rendering())
        return [text for text in texts if text]

    def has_pending_stdout_print(self) -> bool:
        return bool(self.messages_pending_stdout_print())
