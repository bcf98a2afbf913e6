from datetime import datetime, timezone

import pytest

from client.reconstructor import ClientReconstructor, ClientState
from models.conversation import ConversationSummary
from models.events import ChunkEvent, CompleteEvent, ErrorEvent, StartEvent
from models.message import MessageResponse

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(id, role, content, conversation_id="conv-1"):
    return MessageResponse(
        id=id, conversation_id=conversation_id, role=role, content=content, created_at=NOW
    )


def _start(conversation_id="conv-1", content="2+2?"):
    return StartEvent(
        user_message=_message("u-1", "user", content, conversation_id),
        conversation=ConversationSummary(
            id=conversation_id, title=content, created_at=NOW, updated_at=NOW
        ),
    )


def test_submit_inserts_provisional_pair():
    rec = ClientReconstructor()
    rec.submit("  2+2?  ")

    assert rec.state is ClientState.SENDING
    user, placeholder = rec.messages
    assert user.role == "user" and user.content == "2+2?" and user.provisional
    assert placeholder.role == "assistant" and placeholder.in_progress
    assert user.key.startswith("temp-") and placeholder.key.startswith("temp-")
    assert user.key != placeholder.key


def test_only_one_request_in_flight():
    rec = ClientReconstructor()
    rec.submit("first")
    with pytest.raises(RuntimeError):
        rec.submit("second")


def test_full_successful_exchange():
    rec = ClientReconstructor()
    rec.submit("2+2?")

    rec.apply(_start(conversation_id="conv-new"))
    assert rec.conversation_id == "conv-new"
    assert rec.messages[0].server_id == "u-1"
    assert rec.messages[-1].in_progress

    rec.apply(ChunkEvent(content="It is "))
    rec.apply(ChunkEvent(content="4."))
    assert rec.messages[-1].content == "It is 4."

    rec.apply(CompleteEvent(assistant_message=_message("a-1", "assistant", "It is 4.", "conv-new")))

    assert rec.state is ClientState.IDLE
    assert [m.server_id for m in rec.messages] == ["u-1", "a-1"]
    assert not any(m.in_progress for m in rec.messages)


def test_placeholder_stays_last_after_start():
    rec = ClientReconstructor(conversation_id="conv-1")
    rec.load([_message("old-1", "user", "earlier"), _message("old-2", "assistant", "reply")])
    rec.submit("next")

    rec.apply(_start())

    assert [m.key for m in rec.messages][:3] == ["old-1", "old-2", "u-1"]
    assert rec.messages[-1].in_progress


def test_error_replaces_placeholder_with_local_message():
    rec = ClientReconstructor()
    rec.submit("hello")
    rec.apply(_start())
    rec.apply(ChunkEvent(content="partial"))

    rec.apply(ErrorEvent(message="Request timed out. Please try again."))

    assert rec.state is ClientState.IDLE
    last = rec.messages[-1]
    assert last.is_error
    assert last.content == "Request timed out. Please try again."
    assert not any(m.in_progress for m in rec.messages)
    assert len(rec.messages) == 2


def test_events_after_terminal_are_ignored():
    rec = ClientReconstructor()
    rec.submit("hi")
    rec.apply(_start())
    rec.apply(CompleteEvent(assistant_message=_message("a-1", "assistant", "Hello")))
    snapshot = [(m.key, m.content) for m in rec.messages]

    assert rec.apply(ChunkEvent(content="late")) is False
    assert rec.apply(ErrorEvent(message="late")) is False
    assert [(m.key, m.content) for m in rec.messages] == snapshot


def test_transport_failure_synthesizes_error():
    rec = ClientReconstructor()
    rec.submit("hi")

    assert rec.fail("connection reset") is True

    assert rec.state is ClientState.IDLE
    assert rec.messages[-1].is_error
    assert rec.messages[-1].content
    assert rec.fail("again") is False
