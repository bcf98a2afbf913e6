"""
Stream event definitions.

The outbound stream is a closed set of tagged records:

    start     {userMessage, conversation}    exactly once, first
    chunk     {content}                      zero or more
    complete  {assistantMessage}             terminal
    error     {message}                      terminal

Each record is serialized as one Server-Sent-Events `data:` line holding
a JSON object with a `type` tag and camelCase keys. Consumers ignore
unknown tags.
"""

import json
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from models.conversation import ConversationSummary
from models.message import MessageResponse

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


class StartEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["start"] = "start"
    user_message: MessageResponse = Field(..., alias="userMessage")
    conversation: ConversationSummary


class ChunkEvent(BaseModel):
    type: Literal["chunk"] = "chunk"
    content: str


class CompleteEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["complete"] = "complete"
    assistant_message: MessageResponse = Field(..., alias="assistantMessage")


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[StartEvent, ChunkEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(StreamEvent)

TERMINAL_TYPES = frozenset({"complete", "error"})
KNOWN_TYPES = frozenset({"start", "chunk", "complete", "error"})


def is_terminal(event: BaseModel) -> bool:
    """True for the events that end a stream."""
    return getattr(event, "type", None) in TERMINAL_TYPES


def to_sse(event: BaseModel) -> str:
    """Serialize one event as an SSE `data:` frame."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"


def parse_event(data: Union[str, Dict[str, Any]]) -> Optional[BaseModel]:
    """Parse one event record.

    Args:
        data: The JSON text of a `data:` line, or an already-decoded dict.

    Returns:
        The typed event, or None when the tag is unknown (forward
        compatibility) or the record is malformed.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring non-JSON stream record: {data[:80]!r}")
            return None
    if not isinstance(data, dict) or data.get("type") not in KNOWN_TYPES:
        return None
    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed {data.get('type')} event: {e}")
        return None
