"""
Messages router.
Handles message exchange, streamed or blocking, and conversation history.

Two transports feed the same orchestrator:
  GET  /stream  query parameters, for the common text-only case
  POST /stream  JSON body + Authorization header, when a file is attached
Both answer with a text/event-stream of start → chunk* → complete | error.

POST / is the blocking send: same preparation, one JSON reply holding
both saved turns.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import StreamingResponse

from config import get_settings
from dependencies import get_gateway, get_message_store, get_user_store
from llm.gateway import ProviderGateway
from models.message import MessageResponse, SendMessageBody, SendMessageResponse, StreamMessageBody
from pipeline.orchestrator import StreamOrchestrator
from pipeline.session import StreamRequest
from routers.auth import get_current_user, resolve_credential
from store.message_store import MessageStore
from store.user_store import UserStore
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_orchestrator(
    store: MessageStore = Depends(get_message_store),
    users: UserStore = Depends(get_user_store),
    gateway: ProviderGateway = Depends(get_gateway),
) -> StreamOrchestrator:
    async def authenticate(credential: Optional[str]) -> str:
        user = await resolve_credential(credential, users)
        return user.id

    return StreamOrchestrator.from_settings(store, authenticate, gateway, get_settings())


async def _stream_response(orchestrator: StreamOrchestrator, request: StreamRequest) -> StreamingResponse:
    # Validation, auth and ownership errors raise here, before any event
    frames = await orchestrator.open_stream(request)
    return StreamingResponse(frames, media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("", response_model=SendMessageResponse)
async def send_message(
    body: SendMessageBody,
    authorization: Optional[str] = Header(None),
    orchestrator: StreamOrchestrator = Depends(get_orchestrator),
) -> SendMessageResponse:
    """Send a text message and wait for the whole reply."""
    session = await orchestrator.send(StreamRequest(
        content=body.content,
        authorization=authorization,
        conversation_id=body.conversation_id or None,
    ))
    return SendMessageResponse(
        user_message=session.user_message.to_response(),
        assistant_message=session.assistant_message.to_response(),
        conversation_id=session.conversation.id,
    )


@router.get("/stream")
async def stream_message(
    content: str = Query(""),
    conversation_id: Optional[str] = Query(None, alias="conversationId"),
    authorization: Optional[str] = Query(None),
    orchestrator: StreamOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Send a text message and stream the assistant's reply."""
    return await _stream_response(orchestrator, StreamRequest(
        content=content,
        authorization=authorization,
        conversation_id=conversation_id or None,
    ))


@router.post("/stream")
async def stream_message_with_file(
    body: StreamMessageBody,
    authorization: Optional[str] = Header(None),
    orchestrator: StreamOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Send a message (optionally with a file) and stream the reply."""
    return await _stream_response(orchestrator, StreamRequest(
        content=body.content,
        authorization=authorization,
        conversation_id=body.conversation_id or None,
        attached_file=body.attached_file(),
    ))


@router.get("/{conversation_id}", response_model=List[MessageResponse])
async def get_messages(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    limit: Optional[int] = Query(None, ge=1),
    store: MessageStore = Depends(get_message_store),
) -> List[MessageResponse]:
    """Get messages for a conversation in creation order.

    Returns the whole history unless `limit` asks for only the newest N.
    """
    conv = await store.find_conversation(conversation_id, current_user["id"])
    if not conv:
        raise NotFoundError("Conversation not found")

    messages = await store.list_messages(conversation_id, limit=limit)
    return [m.to_response() for m in messages]
