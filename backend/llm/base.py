"""
Abstract base class for LLM providers.
All providers must implement this interface.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, AsyncGenerator
from pydantic import BaseModel
from dataclasses import dataclass


@dataclass
class StreamChunk:
    """A single chunk from streaming response."""
    content: str
    is_done: bool = False


class LLMResponse(BaseModel):
    """Complete response from LLM."""
    content: str
    model: str
    provider: str
    usage: Dict[str, Any] = {}
    finish_reason: Optional[str] = None


class LLMProviderError(Exception):
    """Upstream API failure.

    The message carries the provider's own error text and code (for
    example "429 rate_limit_exceeded: Rate limit reached ...") so the
    error taxonomy can classify it.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        code: Provider error code, if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Each provider implementation must:
    1. Implement generate() for blocking chat completions
    2. Implement stream() for token-by-token chat completions
    3. Implement analyze_file() for single-shot file + text completions
    """

    provider_name: str = "base"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 file_timeout: float = 300.0):
        """
        Initialize provider with credentials.

        Args:
            api_key: API key for authentication (if required)
            base_url: Base URL for API requests
            file_timeout: HTTP timeout for whole-document analysis
        """
        self.api_key = api_key
        self.base_url = base_url
        self.file_timeout = file_timeout

    @abstractmethod
    async def generate(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Generate a complete response (non-streaming).

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier to use
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response

        Returns:
            LLMResponse with generated content
        """
        pass

    @abstractmethod
    async def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream response chunks.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier to use
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response
            **kwargs: Provider-specific options

        Yields:
            StreamChunk objects with partial content; the last one has
            is_done set.
        """
        pass

    @abstractmethod
    async def analyze_file(
        self,
        instruction: str,
        filename: str,
        base64_payload: str,
        model: str,
        mime_type: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Run one whole-document completion over an attached file.

        Args:
            instruction: Accompanying user text
            filename: Original file name
            base64_payload: File content, base64 encoded
            model: File-capable model identifier
            mime_type: Declared MIME type of the file

        Returns:
            LLMResponse with the complete generated text
        """
        pass
