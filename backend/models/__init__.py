"""
Pydantic models package.
Each module contains models for a specific domain.
"""

from models.user import User, UserCreate, UserLogin, UserResponse, TokenResponse
from models.conversation import (
    Conversation,
    ConversationCreate,
    ConversationResponse,
    ConversationSummary,
    ConversationUpdate,
)
from models.message import AttachedFile, Message, MessageResponse, StreamMessageBody
from models.events import (
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    StartEvent,
    StreamEvent,
    parse_event,
)

__all__ = [
    "User", "UserCreate", "UserLogin", "UserResponse", "TokenResponse",
    "Conversation", "ConversationCreate", "ConversationResponse",
    "ConversationSummary", "ConversationUpdate",
    "AttachedFile", "Message", "MessageResponse", "StreamMessageBody",
    "StartEvent", "ChunkEvent", "CompleteEvent", "ErrorEvent",
    "StreamEvent", "parse_event",
]
