import asyncio

import pytest

from llm.base import LLMProviderError
from llm.gateway import DEFAULT_FILE_INSTRUCTION, ProviderGateway, call_with_retry
from utils.errors import ProviderError

from helpers import FakeProvider, SleepRecorder


def _gateway(provider, sleep=None, **kwargs) -> ProviderGateway:
    return ProviderGateway(provider, sleep=sleep or SleepRecorder(), **kwargs)


async def _drain(gateway: ProviderGateway, history):
    return [text async for text in gateway.stream_completion(history)]


def test_call_with_retry_backs_off_linearly_then_raises():
    sleep = SleepRecorder()
    calls = []

    async def always_fails():
        calls.append(1)
        raise RuntimeError(f"failure {len(calls)}")

    with pytest.raises(RuntimeError, match="failure 3"):
        asyncio.run(call_with_retry(always_fails, max_attempts=3, retry_delay=1.0, sleep=sleep))

    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_call_with_retry_returns_first_success():
    sleep = SleepRecorder()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise RuntimeError("once")
        return "ok"

    assert asyncio.run(call_with_retry(flaky, sleep=sleep)) == "ok"
    assert sleep.delays == [1.0]


def test_stream_completion_forwards_fragments_in_order():
    provider = FakeProvider(chunks=["The ", "answer ", "is 4"])
    history = [{"role": "user", "content": "2+2?"}]

    fragments = asyncio.run(_drain(_gateway(provider), history))

    assert fragments == ["The ", "answer ", "is 4"]
    assert provider.stream_calls == [history]


def test_stream_completion_retries_opening_the_stream():
    provider = FakeProvider(chunks=["ok"], failures=2)
    sleep = SleepRecorder()

    fragments = asyncio.run(_drain(_gateway(provider, sleep), []))

    assert fragments == ["ok"]
    assert len(provider.stream_calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_stream_completion_surfaces_provider_error_after_three_attempts():
    provider = FakeProvider(failures=5, error=LLMProviderError("429 rate_limit_exceeded: slow down"))
    sleep = SleepRecorder()

    with pytest.raises(ProviderError) as exc:
        asyncio.run(_drain(_gateway(provider, sleep), []))

    assert len(provider.stream_calls) == 3
    assert sleep.delays == [1.0, 2.0]
    assert exc.value.category == "rate_limited"


def test_stream_failure_after_first_fragment_is_not_retried():
    provider = FakeProvider(chunks=["partial", "never"], fail_after=1)
    received = []

    async def scenario():
        async for text in _gateway(provider).stream_completion([]):
            received.append(text)

    with pytest.raises(ProviderError):
        asyncio.run(scenario())

    assert received == ["partial"]
    assert len(provider.stream_calls) == 1


def test_file_completion_uses_default_instruction():
    provider = FakeProvider(file_text="Summary of the report.")
    gateway = _gateway(provider, file_model="gpt-4o")

    text = asyncio.run(gateway.file_completion("", "report.pdf", "JVBERi0=", "application/pdf"))

    assert text == "Summary of the report."
    assert provider.file_calls[0]["instruction"] == DEFAULT_FILE_INSTRUCTION
    assert provider.file_calls[0]["filename"] == "report.pdf"


def test_file_completion_retries_then_succeeds():
    provider = FakeProvider(file_text="done", failures=2)
    sleep = SleepRecorder()

    text = asyncio.run(_gateway(provider, sleep).file_completion("Summarize", "a.txt", "aGk="))

    assert text == "done"
    assert len(provider.file_calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_file_completion_timeout_maps_to_timeout_error():
    class SlowProvider(FakeProvider):
        async def analyze_file(self, *args, **kwargs):
            await asyncio.sleep(1)
            return await super().analyze_file(*args, **kwargs)

    gateway = _gateway(SlowProvider(file_text="late"), file_timeout=0.01)

    with pytest.raises(ProviderError) as exc:
        asyncio.run(gateway.file_completion("Summarize", "a.txt", "aGk="))

    assert exc.value.category == "timeout"
    assert exc.value.message == "Request timed out. Please try again."


def test_chat_completion_retries_then_returns_whole_text():
    provider = FakeProvider(chunks=["It is ", "4."], failures=2)
    sleep = SleepRecorder()

    text = asyncio.run(_gateway(provider, sleep).chat_completion([{"role": "user", "content": "2+2?"}]))

    assert text == "It is 4."
    assert len(provider.generate_calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_chat_completion_failure_is_sanitized():
    provider = FakeProvider(failures=5, error=LLMProviderError("Request too large for gpt-3.5-turbo"))

    with pytest.raises(ProviderError) as exc:
        asyncio.run(_gateway(provider).chat_completion([]))

    assert exc.value.category == "too_large"
    assert exc.value.status_code == 422
    assert "gpt-3.5" not in exc.value.message
