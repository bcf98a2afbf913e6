"""
Stream Orchestrator: one user submission, end to end.

    prepare()  validate → authenticate → resolve conversation → save user message
    run()      start → load history → provider → chunks → save assistant → complete
    send()     prepare → load history → provider → save assistant, no stream

prepare() runs inside the request handler, so its failures surface as a
normal JSON error response before any event is written. run() executes as
a background task feeding an EventEmitter; once `start` has gone out
every failure is reported in-stream as exactly one `error` event.

Client disconnects:
  - before the answer is complete, the provider work is cancelled and no
    assistant message is saved
  - after the answer is complete (native stream finished, or the file
    completion returned and is being paced out), pacing stops and the
    full answer is still saved
"""

import asyncio
import logging
import re
from typing import AsyncGenerator, Awaitable, Callable, List, Optional

from config import Settings
from llm.gateway import ProviderGateway
from models.conversation import Conversation
from models.events import ChunkEvent, CompleteEvent, ErrorEvent, StartEvent
from pipeline.emitter import EventEmitter
from pipeline.session import StreamRequest, StreamSession
from store.message_store import MessageStore
from utils.errors import NotFoundError, ValidationError, log_error, public_message
from utils.validators import derive_title, validate_message_content

logger = logging.getLogger(__name__)

# Credential → user id. Raises AuthenticationError on a bad credential.
Authenticator = Callable[[Optional[str]], Awaitable[str]]

# Strong references to in-flight stream tasks so they are not collected
_background_tasks = set()

_TOKEN_PATTERN = re.compile(r"\s*\S+|\s+$")


def split_for_streaming(text: str) -> List[str]:
    """Split a finished answer into word-sized pieces for paced delivery.

    Each piece keeps its leading whitespace, so "".join(pieces) == text.
    """
    return _TOKEN_PATTERN.findall(text)


class StreamOrchestrator:
    """Drives one streamed exchange between a user and the provider."""

    def __init__(
        self,
        store: MessageStore,
        authenticate: Authenticator,
        gateway: ProviderGateway,
        max_message_length: int = 10000,
        title_max_length: int = 50,
        chunk_delay: float = 0.05,
        keepalive_interval: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self._authenticate = authenticate
        self.gateway = gateway
        self.max_message_length = max_message_length
        self.title_max_length = title_max_length
        self.chunk_delay = chunk_delay
        self.keepalive_interval = keepalive_interval
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        store: MessageStore,
        authenticate: Authenticator,
        gateway: ProviderGateway,
        settings: Settings,
    ) -> "StreamOrchestrator":
        return cls(
            store,
            authenticate,
            gateway,
            max_message_length=settings.max_message_length,
            title_max_length=settings.title_max_length,
            chunk_delay=settings.stream_chunk_delay,
            keepalive_interval=settings.keepalive_interval,
        )

    # ----------------------------------------------------------
    # Before the stream opens
    # ----------------------------------------------------------

    async def prepare(self, request: StreamRequest) -> StreamSession:
        """Validate, authenticate and persist the user's message.

        Raises:
            ValidationError: empty or oversized content, broken attachment.
            AuthenticationError: missing or invalid credential.
            NotFoundError: conversation missing or owned by someone else.
        """
        ok, error = validate_message_content(
            request.content, request.has_file, self.max_message_length
        )
        if not ok:
            raise ValidationError(error)

        attached = request.attached_file
        if attached is not None and not (attached.filename.strip() and attached.base64_payload):
            raise ValidationError("Attached file must include a filename and data")

        user_id = await self._authenticate(request.authorization)
        conversation = await self._resolve_conversation(request, user_id)

        user_message = await self.store.create_message(
            conversation.id, user_id, "user", (request.content or "").strip()
        )
        return StreamSession(
            user_id=user_id,
            conversation=conversation,
            user_message=user_message,
            attached_file=attached,
        )

    async def _resolve_conversation(self, request: StreamRequest, user_id: str) -> Conversation:
        title = derive_title(request.content, self.title_max_length)

        if not request.conversation_id:
            return await self.store.create_conversation(user_id, title)

        conversation = await self.store.find_conversation(request.conversation_id, user_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")

        # Conversations created empty take their title from the first message
        if not conversation.title:
            updated = await self.store.update_title(conversation.id, user_id, title)
            if updated is not None:
                conversation = updated
        return conversation

    # ----------------------------------------------------------
    # Blocking exchange
    # ----------------------------------------------------------

    async def send(self, request: StreamRequest) -> StreamSession:
        """Answer one text message without streaming.

        Same preparation and persistence as the stream, but the reply comes
        from a single retried provider call and is returned whole.

        Raises:
            ValidationError, AuthenticationError, NotFoundError: as prepare().
            ProviderError: when every provider attempt failed; the user's
                message stays saved, no assistant message is written.
        """
        session = await self.prepare(request)

        messages = await self.store.list_messages(session.conversation.id)
        session.history = [{"role": m.role, "content": m.content} for m in messages]

        session.full_response = await self.gateway.chat_completion(session.history)
        session.answer_ready = True

        await self.store.touch_conversation(session.conversation.id)
        session.assistant_message = await self.store.create_message(
            session.conversation.id, session.user_id, "assistant", session.full_response
        )
        logger.info(
            f"Answered conversation {session.conversation.id} "
            f"({len(session.full_response)} chars, blocking)"
        )
        return session

    # ----------------------------------------------------------
    # The stream itself
    # ----------------------------------------------------------

    async def run(self, session: StreamSession, emitter: EventEmitter) -> None:
        """Produce the answer and emit start → chunk* → complete | error."""
        await emitter.emit(StartEvent(
            user_message=session.user_message.to_response(),
            conversation=session.conversation.summary(),
        ))

        try:
            messages = await self.store.list_messages(session.conversation.id)
            session.history = [{"role": m.role, "content": m.content} for m in messages]

            if session.has_file:
                await self._answer_file(session, emitter)
            else:
                await self._answer_chat(session, emitter)

            # Assistant message is the last write of the exchange
            await self.store.touch_conversation(session.conversation.id)
            session.assistant_message = await self.store.create_message(
                session.conversation.id, session.user_id, "assistant", session.full_response
            )
        except asyncio.CancelledError:
            logger.info(
                f"Stream for conversation {session.conversation.id} cancelled "
                f"before the answer was complete; nothing saved"
            )
            raise
        except Exception as e:
            log_error(e, "message stream")
            await emitter.emit(ErrorEvent(message=public_message(e)))
            return

        await emitter.emit(CompleteEvent(
            assistant_message=session.assistant_message.to_response(),
        ))
        logger.info(
            f"Stream complete for conversation {session.conversation.id} "
            f"({len(session.full_response)} chars)"
        )

    async def _answer_chat(self, session: StreamSession, emitter: EventEmitter) -> None:
        async for fragment in self.gateway.stream_completion(session.history):
            session.full_response += fragment
            await emitter.emit(ChunkEvent(content=fragment))
        session.answer_ready = True

    async def _answer_file(self, session: StreamSession, emitter: EventEmitter) -> None:
        attached = session.attached_file
        text = await self.gateway.file_completion(
            instruction=session.user_message.content,
            filename=attached.filename,
            base64_payload=attached.base64_payload,
            mime_type=attached.mime_type,
        )
        session.full_response = text
        session.answer_ready = True

        pieces = split_for_streaming(text)
        for i, piece in enumerate(pieces):
            if emitter.closed:
                logger.info("Client gone; skipping remaining paced chunks")
                break
            await emitter.emit(ChunkEvent(content=piece))
            if i < len(pieces) - 1 and self.chunk_delay > 0:
                await self._sleep(self.chunk_delay)

    # ----------------------------------------------------------
    # Wiring to an HTTP response
    # ----------------------------------------------------------

    async def open_stream(self, request: StreamRequest) -> AsyncGenerator[str, None]:
        """Prepare the session and hand back its event stream.

        Provider work starts when the response begins reading frames; a
        stream closed before that never reaches the provider.

        Returns:
            An async generator of SSE frames for a StreamingResponse.
        """
        session = await self.prepare(request)
        return self._relay(session, EventEmitter(self.keepalive_interval))

    async def _relay(self, session: StreamSession, emitter: EventEmitter) -> AsyncGenerator[str, None]:
        task = asyncio.create_task(self.run(session, emitter))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

        finished = False
        try:
            async for frame in emitter.stream():
                yield frame
            finished = True
        finally:
            if not finished:
                self._on_disconnect(session, emitter, task)

    def _on_disconnect(
        self,
        session: StreamSession,
        emitter: EventEmitter,
        task: "asyncio.Task[None]",
    ) -> None:
        emitter.close()
        if task.done():
            return
        if session.answer_ready:
            logger.info(
                f"Client disconnected from conversation {session.conversation.id}; "
                f"answer complete, saving it"
            )
        else:
            logger.info(
                f"Client disconnected from conversation {session.conversation.id}; "
                f"cancelling provider call"
            )
            task.cancel()
