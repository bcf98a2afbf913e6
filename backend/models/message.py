"""
Message model definitions.
Turns of a conversation plus the inbound send and stream request bodies.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class Message(BaseModel):
    """Full message model as stored in database."""
    id: str
    conversation_id: str
    user_id: str
    role: Role
    content: str
    created_at: datetime

    def to_response(self) -> "MessageResponse":
        return MessageResponse(
            id=self.id,
            conversation_id=self.conversation_id,
            role=self.role,
            content=self.content,
            created_at=self.created_at,
        )


class MessageResponse(BaseModel):
    """Message data returned in API responses and stream events (camelCase on the wire)."""
    id: str
    conversation_id: str = Field(..., alias="conversationId")
    role: Role
    content: str
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AttachedFile(BaseModel):
    """A file sent along with a message for whole-document analysis.

    Attributes:
        filename: Original filename, forwarded to the provider.
        mime_type: Declared MIME type.
        base64_payload: File bytes, base64 encoded.
    """
    filename: str
    mime_type: str = "application/octet-stream"
    base64_payload: str


class StreamMessageBody(BaseModel):
    """Body of `POST /api/messages/stream` (used when a file is attached).

    Field names accept both the camelCase wire form and snake_case.
    Content length is checked by the stream orchestrator, not here, so an
    oversized message is reported as a validation error response.

    Args:
        conversation_id: Existing conversation, or empty for a new one.
        content: Message text; may be empty when a file is attached.
        filename: Attached file name.
        mime_type: Attached file MIME type.
        base64_payload: Attached file data.
    """
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(None, alias="conversationId")
    content: str = ""
    filename: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")
    base64_payload: Optional[str] = Field(None, alias="base64Payload")

    def attached_file(self) -> Optional[AttachedFile]:
        """Build the attachment when any file field was sent."""
        if not (self.filename or self.base64_payload):
            return None
        return AttachedFile(
            filename=self.filename or "",
            mime_type=self.mime_type or "application/octet-stream",
            base64_payload=self.base64_payload or "",
        )


class SendMessageBody(BaseModel):
    """Body of `POST /api/messages`, the blocking text-only send."""
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(None, alias="conversationId")
    content: str = ""


class SendMessageResponse(BaseModel):
    """Both persisted turns of a blocking send."""
    model_config = ConfigDict(populate_by_name=True)

    user_message: MessageResponse = Field(..., alias="userMessage")
    assistant_message: MessageResponse = Field(..., alias="assistantMessage")
    conversation_id: str = Field(..., alias="conversationId")
