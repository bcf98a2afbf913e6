"""
Client Reconstructor: folds a message stream into a local message list.

    IDLE ──submit──▶ SENDING ──start/chunk──▶ SENDING
                        │
                        ├──complete──▶ IDLE   placeholder replaced by server record
                        └──error─────▶ IDLE   placeholder replaced by local error

submit() inserts two provisional entries immediately (optimistic UI): the
user's message and an empty in-progress assistant placeholder. Both carry
temporary keys that never collide with server ids. Events arriving while
IDLE belong to a finished request and are ignored.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel

from models.events import ChunkEvent, CompleteEvent, ErrorEvent, StartEvent
from models.message import MessageResponse
from utils.errors import user_message_for

logger = logging.getLogger(__name__)


class ClientState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


@dataclass
class LocalMessage:
    """One entry in the client's message list.

    Attributes:
        key: Stable local key (server id once confirmed).
        role: "user" or "assistant".
        content: Text shown to the user.
        server_id: Server identity, None while provisional.
        in_progress: Assistant placeholder still receiving chunks.
        is_error: Locally synthesized error entry (never persisted).
    """
    key: str
    role: str
    content: str
    server_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    in_progress: bool = False
    is_error: bool = False

    @property
    def provisional(self) -> bool:
        return self.server_id is None

    @classmethod
    def from_server(cls, message: MessageResponse) -> "LocalMessage":
        return cls(
            key=message.id,
            role=message.role,
            content=message.content,
            server_id=message.id,
            conversation_id=message.conversation_id,
            created_at=message.created_at,
        )


def _temp_key(kind: str) -> str:
    return f"temp-{kind}-{uuid.uuid4().hex}"


class ClientReconstructor:
    """Message list for one conversation view, one request in flight."""

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        self.messages: List[LocalMessage] = []
        self.state = ClientState.IDLE
        self._pending_user_key: Optional[str] = None
        self._placeholder_key: Optional[str] = None

    def load(self, messages: Iterable[MessageResponse]) -> None:
        """Replace the list with persisted history."""
        self.messages = [LocalMessage.from_server(m) for m in messages]

    @property
    def placeholder(self) -> Optional[LocalMessage]:
        return self._find(self._placeholder_key)

    def _find(self, key: Optional[str]) -> Optional[LocalMessage]:
        if key is None:
            return None
        for message in self.messages:
            if message.key == key:
                return message
        return None

    def _replace(self, key: str, message: LocalMessage) -> None:
        self.messages = [message if m.key == key else m for m in self.messages]

    def _remove(self, key: Optional[str]) -> None:
        self.messages = [m for m in self.messages if m.key != key]

    # ----------------------------------------------------------
    # Transitions
    # ----------------------------------------------------------

    def submit(self, content: str) -> None:
        """Insert the optimistic user message and assistant placeholder.

        Raises:
            RuntimeError: a request is already in flight.
        """
        if self.state is ClientState.SENDING:
            raise RuntimeError("A message is already being sent")

        self._pending_user_key = _temp_key("user")
        self._placeholder_key = _temp_key("assistant")
        self.messages.append(LocalMessage(
            key=self._pending_user_key,
            role="user",
            content=content.strip(),
            conversation_id=self.conversation_id,
        ))
        self.messages.append(LocalMessage(
            key=self._placeholder_key,
            role="assistant",
            content="",
            conversation_id=self.conversation_id,
            in_progress=True,
        ))
        self.state = ClientState.SENDING

    def apply(self, event: BaseModel) -> bool:
        """Fold one stream event into the list.

        Returns:
            True if the event changed local state.
        """
        if self.state is not ClientState.SENDING:
            logger.debug(f"Ignoring {getattr(event, 'type', '?')} event while idle")
            return False

        if isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, ChunkEvent):
            placeholder = self.placeholder
            if placeholder is not None:
                placeholder.content += event.content
        elif isinstance(event, CompleteEvent):
            confirmed = LocalMessage.from_server(event.assistant_message)
            if self.placeholder is not None:
                self._replace(self._placeholder_key, confirmed)
            else:
                self.messages.append(confirmed)
            self._finish()
        elif isinstance(event, ErrorEvent):
            self._show_error(event.message)
        else:
            return False
        return True

    def _on_start(self, event: StartEvent) -> None:
        confirmed = LocalMessage.from_server(event.user_message)
        if self._find(self._pending_user_key) is not None:
            self._replace(self._pending_user_key, confirmed)
        else:
            self.messages.append(confirmed)
        self._pending_user_key = confirmed.key

        # Keep the placeholder last
        placeholder = self.placeholder
        if placeholder is not None:
            self._remove(placeholder.key)
            self.messages.append(placeholder)

        if event.conversation.id != self.conversation_id:
            logger.info(f"Switching conversation {self.conversation_id} -> {event.conversation.id}")
            self.conversation_id = event.conversation.id
        for message in self.messages:
            if message.provisional:
                message.conversation_id = self.conversation_id

    def fail(self, reason: Optional[str] = None, message: Optional[str] = None) -> bool:
        """Transport-level failure or a rejected request.

        Args:
            reason: Raw failure description, translated for display.
            message: Already user-safe text, shown as is.
        """
        if self.state is not ClientState.SENDING:
            return False
        self._show_error(message or user_message_for(reason))
        return True

    def _show_error(self, text: str) -> None:
        self._remove(self._placeholder_key)
        self.messages.append(LocalMessage(
            key=_temp_key("error"),
            role="assistant",
            content=text,
            conversation_id=self.conversation_id,
            is_error=True,
        ))
        self._finish()

    def _finish(self) -> None:
        self.state = ClientState.IDLE
        self._pending_user_key = None
        self._placeholder_key = None
