from typing import AsyncGenerator, Dict, List, Optional

from llm.base import LLMProvider, LLMResponse, StreamChunk
from models.events import parse_event


class FakeProvider(LLMProvider):
    """Scripted provider: fails `failures` times, then answers."""

    provider_name = "fake"

    def __init__(
        self,
        chunks: Optional[List[str]] = None,
        file_text: str = "",
        failures: int = 0,
        error: Optional[Exception] = None,
        fail_after: Optional[int] = None,
    ):
        super().__init__(api_key="test-key")
        self.chunks = chunks if chunks is not None else ["Hello", " there"]
        self.file_text = file_text
        self.failures = failures
        self.error = error or RuntimeError("upstream exploded")
        self.fail_after = fail_after
        self.stream_calls: List[List[Dict[str, str]]] = []
        self.generate_calls: List[List[Dict[str, str]]] = []
        self.file_calls: List[Dict[str, Optional[str]]] = []

    def _maybe_fail(self) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise self.error

    async def generate(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        self.generate_calls.append(list(messages))
        self._maybe_fail()
        return LLMResponse(content="".join(self.chunks), model=model, provider=self.provider_name)

    async def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[StreamChunk, None]:
        self.stream_calls.append(list(messages))
        self._maybe_fail()
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            yield StreamChunk(content=chunk)
        yield StreamChunk(content="", is_done=True)

    async def analyze_file(
        self,
        instruction: str,
        filename: str,
        base64_payload: str,
        model: str,
        mime_type: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        self.file_calls.append({
            "instruction": instruction,
            "filename": filename,
            "base64_payload": base64_payload,
            "mime_type": mime_type,
        })
        self._maybe_fail()
        return LLMResponse(content=self.file_text, model=model, provider=self.provider_name)


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


async def collect_events(frames: AsyncGenerator[str, None]) -> List:
    """Drain an SSE frame generator into parsed events (keep-alives skipped)."""
    events = []
    async for frame in frames:
        if frame.startswith("data: "):
            events.append(parse_event(frame[len("data: "):].strip()))
    return events


def parse_sse_body(body: str) -> List:
    """Parse a complete text/event-stream body into events."""
    return [
        parse_event(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]
