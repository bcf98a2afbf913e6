"""
Conversations router.
Handles CRUD operations for chat conversations.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from dependencies import get_message_store
from routers.auth import get_current_user
from models.conversation import (
    Conversation,
    ConversationCreate,
    ConversationResponse,
    ConversationUpdate
)
from store.message_store import MessageStore
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


def _response(conv: Conversation, message_count: int = 0) -> ConversationResponse:
    return ConversationResponse(
        id=conv.id,
        user_id=conv.user_id,
        title=conv.title,
        created_at=conv.created_at,
        updated_at=conv.updated_at,
        message_count=message_count,
    )


@router.post("", response_model=ConversationResponse)
async def create_conversation(
    data: ConversationCreate,
    current_user: dict = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
) -> ConversationResponse:
    """Create a new conversation.

    Without a title, the first streamed message names it.
    """
    title = data.title.strip() if data.title else None
    conv = await store.create_conversation(current_user["id"], title or None)
    return _response(conv)


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: dict = Depends(get_current_user),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    store: MessageStore = Depends(get_message_store),
) -> List[ConversationResponse]:
    """List user's conversations, most recently updated first."""
    rows = await store.list_conversations(current_user["id"], limit=limit, skip=skip)
    return [_response(r["conversation"], r["message_count"]) for r in rows]


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
) -> ConversationResponse:
    """Get a specific conversation by ID."""
    conv = await store.find_conversation(conversation_id, current_user["id"])
    if not conv:
        raise NotFoundError("Conversation not found")

    return _response(conv, await store.count_messages(conversation_id))


@router.put("/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: str,
    data: ConversationUpdate,
    current_user: dict = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
) -> ConversationResponse:
    """Rename a conversation."""
    title = data.title.strip()
    if not title:
        raise ValidationError("Title cannot be blank")

    conv = await store.update_title(conversation_id, current_user["id"], title)
    if not conv:
        raise NotFoundError("Conversation not found")

    return _response(conv, await store.count_messages(conversation_id))


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
) -> dict:
    """Delete a conversation and all its messages."""
    if not await store.delete_conversation(conversation_id, current_user["id"]):
        raise NotFoundError("Conversation not found")

    return {"message": "Conversation deleted"}
