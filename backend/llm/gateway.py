"""
Provider Gateway: the upstream call shapes behind one retry policy.

    stream_completion(history)        → async iterator of text fragments
    chat_completion(history)          → one complete string
    file_completion(instruction, ...) → one complete string

All go through call_with_retry(): up to `max_attempts` tries with a
linear backoff of `attempt × retry_delay` seconds between them. When every
attempt fails, the last error is translated into a ProviderError carrying
the sanitized user message; callers only see final success or final
failure.

A streamed attempt covers opening the stream and reading its first
fragment. Once a fragment has been handed to the caller the attempt is
committed, and a later failure is surfaced without retrying so no chunk
is ever delivered twice.
"""

import asyncio
import logging
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from config import Settings
from llm.base import LLMProvider, StreamChunk
from utils.errors import to_provider_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FILE_INSTRUCTION = "Please analyze this file."

Sleep = Callable[[float], Awaitable[None]]


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    retry_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
    label: str = "provider call",
) -> T:
    """Run `operation` until it succeeds or `max_attempts` is reached.

    Waits `attempt × retry_delay` seconds after each failed attempt
    except the last. Cancellation is never retried.

    Raises:
        The error of the final attempt, unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            logger.warning(f"{label} failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt >= max_attempts:
                raise
            await sleep(retry_delay * attempt)


async def _next_text(stream: AsyncIterator[StreamChunk]) -> Optional[str]:
    """Next non-empty fragment, or None once the provider signals the end."""
    while True:
        try:
            chunk = await stream.__anext__()
        except StopAsyncIteration:
            return None
        if chunk.content:
            return chunk.content
        if chunk.is_done:
            return None


class ProviderGateway:
    """Uniform "produce full text, optionally incrementally" contract."""

    def __init__(
        self,
        provider: LLMProvider,
        chat_model: str = "gpt-3.5-turbo",
        file_model: str = "gpt-4o",
        max_tokens: Optional[int] = 500,
        temperature: float = 0.7,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        file_timeout: float = 300.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.chat_model = chat_model
        self.file_model = file_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.file_timeout = file_timeout
        self._sleep = sleep

    @classmethod
    def from_settings(cls, provider: LLMProvider, settings: Settings) -> "ProviderGateway":
        return cls(
            provider,
            chat_model=settings.chat_model,
            file_model=settings.file_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            max_attempts=settings.provider_max_attempts,
            retry_delay=settings.provider_retry_delay,
            file_timeout=settings.file_completion_timeout,
        )

    async def _retry(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        return await call_with_retry(
            operation,
            max_attempts=self.max_attempts,
            retry_delay=self.retry_delay,
            sleep=self._sleep,
            label=label,
        )

    async def stream_completion(self, history: List[Dict[str, str]]) -> AsyncGenerator[str, None]:
        """Token-streamed chat completion over the conversation history.

        Yields:
            Text fragments in provider order.

        Raises:
            ProviderError: when no attempt could open the stream, or the
                committed stream fails part way.
        """

        async def _open() -> Tuple[AsyncGenerator[StreamChunk, None], Optional[str]]:
            stream = self.provider.stream(
                messages=history,
                model=self.chat_model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            try:
                first = await _next_text(stream)
            except BaseException:
                await stream.aclose()
                raise
            return stream, first

        try:
            stream, text = await self._retry(_open, "chat completion stream")
        except Exception as e:
            raise to_provider_error(e) from e

        try:
            while text is not None:
                yield text
                text = await _next_text(stream)
        except Exception as e:
            logger.error(f"Chat completion stream failed mid-way: {e}")
            raise to_provider_error(e) from e
        finally:
            await stream.aclose()

    async def chat_completion(self, history: List[Dict[str, str]]) -> str:
        """Blocking chat completion over the conversation history.

        Raises:
            ProviderError: after retries are exhausted.
        """

        async def _call() -> str:
            response = await self.provider.generate(
                messages=history,
                model=self.chat_model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            return response.content

        try:
            return await self._retry(_call, "chat completion")
        except Exception as e:
            raise to_provider_error(e) from e

    async def file_completion(
        self,
        instruction: str,
        filename: str,
        base64_payload: str,
        mime_type: Optional[str] = None,
    ) -> str:
        """Single-shot analysis of an attached file.

        The whole call, retries included, is bounded by `file_timeout`.

        Raises:
            ProviderError: after retries are exhausted or the bound is hit.
        """

        async def _call() -> str:
            response = await self.provider.analyze_file(
                instruction=instruction or DEFAULT_FILE_INSTRUCTION,
                filename=filename,
                base64_payload=base64_payload,
                model=self.file_model,
                mime_type=mime_type,
            )
            return response.content

        try:
            return await asyncio.wait_for(
                self._retry(_call, f"file completion ({filename})"),
                timeout=self.file_timeout,
            )
        except Exception as e:
            raise to_provider_error(e) from e
