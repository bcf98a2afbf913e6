import asyncio
import dataclasses
import json

import httpx
import pytest

from llm.base import LLMProviderError
from llm.openai_provider import OpenAIProvider
from utils.errors import classify_provider_error


def _provider(handler, api_key="sk-test"):
    return OpenAIProvider(api_key=api_key, base_url="https://llm.test/v1",
                          transport=httpx.MockTransport(handler))


def test_stream_parses_chat_completion_chunks():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        lines = [
            'data: {"choices":[{"delta":{"role":"assistant"}}]}',
            'data: {"choices":[{"delta":{"content":"Hel"}}]}',
            'data: {"choices":[{"delta":{"content":"lo"}}]}',
            "data: [DONE]",
        ]
        return httpx.Response(200, text="\n\n".join(lines) + "\n\n")

    async def scenario():
        provider = _provider(handler)
        return [c async for c in provider.stream([{"role": "user", "content": "hi"}], model="gpt-3.5-turbo", max_tokens=500)]

    chunks = asyncio.run(scenario())

    assert [c.content for c in chunks] == ["Hel", "lo", ""]
    assert dataclasses.asdict(chunks[0]) == {"content": "Hel", "is_done": False}
    assert chunks[-1].is_done
    assert seen[0]["stream"] is True
    assert seen[0]["max_tokens"] == 500


def test_upstream_error_carries_code_for_classification():
    def handler(request):
        return httpx.Response(429, json={"error": {
            "message": "Rate limit reached for requests",
            "code": "rate_limit_exceeded",
        }})

    async def scenario():
        provider = _provider(handler)
        async for _ in provider.stream([], model="gpt-3.5-turbo"):
            pass

    with pytest.raises(LLMProviderError) as exc:
        asyncio.run(scenario())

    assert exc.value.status_code == 429
    assert exc.value.code == "rate_limit_exceeded"
    assert classify_provider_error(exc.value)[0] == "rate_limited"


def test_missing_api_key_is_configuration_error():
    async def scenario():
        provider = _provider(lambda request: httpx.Response(200), api_key=None)
        await provider.analyze_file("Summarize", "a.txt", "aGk=", model="gpt-4o")

    with pytest.raises(LLMProviderError) as exc:
        asyncio.run(scenario())

    assert classify_provider_error(exc.value)[0] == "configuration"


def test_analyze_file_sends_data_url_and_reads_output_text():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={
            "status": "completed",
            "output": [{
                "type": "message",
                "content": [{"type": "output_text", "text": "A report about Q3."}],
            }],
        })

    async def scenario():
        provider = _provider(handler)
        return await provider.analyze_file(
            "Summarize", "report.pdf", "JVBERi0=", model="gpt-4o", mime_type="application/pdf"
        )

    response = asyncio.run(scenario())

    assert response.content == "A report about Q3."
    parts = seen[0]["input"][0]["content"]
    assert parts[0] == {
        "type": "input_file",
        "filename": "report.pdf",
        "file_data": "data:application/pdf;base64,JVBERi0=",
    }
    assert parts[1] == {"type": "input_text", "text": "Summarize"}


def test_generate_posts_without_stream_flag():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={
            "choices": [{"message": {"role": "assistant", "content": "4."}, "finish_reason": "stop"}],
            "usage": {"total_tokens": 12},
        })

    async def scenario():
        provider = _provider(handler)
        return await provider.generate([{"role": "user", "content": "2+2?"}], model="gpt-3.5-turbo", max_tokens=500)

    response = asyncio.run(scenario())

    assert response.content == "4."
    assert response.finish_reason == "stop"
    assert "stream" not in seen[0]
    assert seen[0]["messages"] == [{"role": "user", "content": "2+2?"}]
