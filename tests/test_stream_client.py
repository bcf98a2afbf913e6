import asyncio
import json
from datetime import datetime, timezone

import httpx

from client.reconstructor import ClientReconstructor, ClientState
from client.stream_client import StreamClient
from models.conversation import ConversationSummary
from models.events import KEEPALIVE_FRAME, ChunkEvent, CompleteEvent, StartEvent, to_sse
from models.message import AttachedFile, MessageResponse

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(id, role, content):
    return MessageResponse(id=id, conversation_id="conv-9", role=role, content=content, created_at=NOW)


def _sse_body(answer="Hi!"):
    events = [
        StartEvent(
            user_message=_message("u-1", "user", "hello"),
            conversation=ConversationSummary(id="conv-9", title="hello", created_at=NOW, updated_at=NOW),
        ),
        ChunkEvent(content=answer[:2]),
        ChunkEvent(content=answer[2:]),
        CompleteEvent(assistant_message=_message("a-1", "assistant", answer)),
    ]
    frames = [to_sse(events[0]), KEEPALIVE_FRAME, 'data: {"type":"typing"}\n\n']
    frames += [to_sse(e) for e in events[1:]]
    return "".join(frames)


def _run(handler, scenario):
    async def wrapper():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="http://relay.test") as http:
            return await scenario(StreamClient(http, token="tok-123"))

    return asyncio.run(wrapper())


def _sse_response(body):
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, text=body)


def test_text_message_uses_get_with_query_params():
    seen = []

    def handler(request):
        seen.append(request)
        return _sse_response(_sse_body())

    async def scenario(client):
        rec = ClientReconstructor()
        await client.send(rec, "hello")
        return rec

    rec = _run(handler, scenario)

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/api/messages/stream"
    assert request.url.params["content"] == "hello"
    assert request.url.params["authorization"] == "tok-123"
    assert "conversationId" not in request.url.params

    assert rec.state is ClientState.IDLE
    assert rec.conversation_id == "conv-9"
    assert [(m.role, m.content) for m in rec.messages] == [("user", "hello"), ("assistant", "Hi!")]


def test_file_message_uses_post_with_bearer_header():
    seen = []

    def handler(request):
        seen.append(request)
        return _sse_response(_sse_body("Summary."))

    async def scenario(client):
        rec = ClientReconstructor(conversation_id="conv-9")
        await client.send(rec, "", AttachedFile(
            filename="report.pdf", mime_type="application/pdf", base64_payload="JVBERi0=",
        ))
        return rec

    rec = _run(handler, scenario)

    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer tok-123"
    body = json.loads(request.content)
    assert body["conversationId"] == "conv-9"
    assert body["filename"] == "report.pdf"
    assert body["mimeType"] == "application/pdf"
    assert body["base64Payload"] == "JVBERi0="
    assert rec.messages[-1].content == "Summary."


def test_synchronous_error_response_becomes_local_error():
    def handler(request):
        return httpx.Response(404, json={"error": "Conversation not found", "type": "not_found"})

    async def scenario(client):
        rec = ClientReconstructor(conversation_id="gone")
        await client.send(rec, "hello")
        return rec

    rec = _run(handler, scenario)

    assert rec.state is ClientState.IDLE
    assert rec.messages[-1].is_error
    assert rec.messages[-1].content == "Conversation not found"


def test_stream_cut_before_terminal_event_fails_locally():
    def handler(request):
        start = _sse_body().split(KEEPALIVE_FRAME)[0]
        return _sse_response(start)

    async def scenario(client):
        rec = ClientReconstructor()
        await client.send(rec, "hello")
        return rec

    rec = _run(handler, scenario)

    assert rec.state is ClientState.IDLE
    assert rec.messages[0].server_id == "u-1"
    assert rec.messages[-1].is_error


def test_transport_error_fails_locally():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario(client):
        rec = ClientReconstructor()
        await client.send(rec, "hello")
        return rec

    rec = _run(handler, scenario)

    assert rec.state is ClientState.IDLE
    assert rec.messages[-1].is_error


def test_load_messages_replaces_history():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer tok-123"
        return httpx.Response(200, json=[
            json.loads(_message("u-1", "user", "hello").model_dump_json(by_alias=True)),
            json.loads(_message("a-1", "assistant", "Hi!").model_dump_json(by_alias=True)),
        ])

    async def scenario(client):
        rec = ClientReconstructor()
        await client.load_messages(rec, "conv-9")
        return rec

    rec = _run(handler, scenario)

    assert rec.conversation_id == "conv-9"
    assert [m.server_id for m in rec.messages] == ["u-1", "a-1"]
