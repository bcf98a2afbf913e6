"""
Conversation model definitions.
Represents a titled, owned thread of messages.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class ConversationCreate(BaseModel):
    """Schema for creating a new conversation.

    When no title is given, the first message sent into the conversation
    provides one.
    """
    title: Optional[str] = Field(None, max_length=200)


class ConversationUpdate(BaseModel):
    """Schema for renaming a conversation."""
    title: str = Field(..., min_length=1, max_length=200)


class Conversation(BaseModel):
    """
    Full conversation model as stored in database.
    `updated_at` moves forward on every message pair.
    """
    id: str
    user_id: str
    title: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

    def summary(self) -> "ConversationSummary":
        """Public subset carried by the stream `start` event."""
        return ConversationSummary(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ConversationSummary(BaseModel):
    """Conversation fields a streaming client needs to switch its view."""
    id: str
    title: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ConversationResponse(BaseModel):
    """Conversation data returned in API responses."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
    id: str
    user_id: str = Field(..., alias="userId")
    title: Optional[str]
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    message_count: int = Field(0, alias="messageCount")  # Populated when fetching
