"""
LLM providers package.
Provider implementations plus the retrying gateway the stream pipeline uses.
"""

from llm.base import LLMProvider, LLMProviderError, LLMResponse, StreamChunk
from llm.factory import create_provider, provider_from_settings
from llm.gateway import ProviderGateway, call_with_retry

__all__ = [
    "LLMProvider",
    "LLMProviderError",
    "LLMResponse",
    "StreamChunk",
    "create_provider",
    "provider_from_settings",
    "ProviderGateway",
    "call_with_retry",
]
