"""
Inbound stream request and the per-request session state.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.conversation import Conversation
from models.message import AttachedFile, Message


@dataclass
class StreamRequest:
    """One user submission, as received from either transport.

    Attributes:
        content: Raw message text (not yet trimmed).
        authorization: Credential, "Bearer <token>" or the bare token.
        conversation_id: Existing conversation, None/"" for a new one.
        attached_file: Optional file for whole-document analysis.
    """
    content: str
    authorization: Optional[str]
    conversation_id: Optional[str] = None
    attached_file: Optional[AttachedFile] = None

    @property
    def has_file(self) -> bool:
        return self.attached_file is not None


@dataclass
class StreamSession:
    """State owned by one orchestrator invocation.

    Lives from the user-message write until the response channel closes;
    no other task reads or mutates it.
    """
    user_id: str
    conversation: Conversation
    user_message: Message
    attached_file: Optional[AttachedFile] = None
    history: List[Dict[str, str]] = field(default_factory=list)
    full_response: str = ""
    # Set once the provider has produced the complete answer in memory
    answer_ready: bool = False
    assistant_message: Optional[Message] = None

    @property
    def has_file(self) -> bool:
        return self.attached_file is not None
