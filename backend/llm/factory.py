"""
LLM Provider factory module.
Creates provider instances based on configuration.
"""

import logging
from typing import Optional, Dict

from config import Settings
from llm.base import LLMProvider
from llm.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# ============================================================
# Provider Registry
# ============================================================
PROVIDERS: Dict[str, type] = {
    "openai": OpenAIProvider,
}


def create_provider(
    provider_name: str,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance.

    Args:
        provider_name: Name of the provider (openai)
        api_key: API key for authentication
        base_url: Custom base URL for the API
        **kwargs: Provider-specific options (file_timeout)

    Returns:
        LLMProvider instance or None if provider not found
    """
    provider_class = PROVIDERS.get(provider_name.lower())

    if not provider_class:
        logger.error(f"Unknown provider: {provider_name}")
        return None

    return provider_class(api_key=api_key, base_url=base_url, **kwargs)


def provider_from_settings(settings: Settings) -> LLMProvider:
    """Build the configured provider, failing loudly on a bad name."""
    provider = create_provider(
        settings.llm_provider,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        file_timeout=settings.file_completion_timeout,
    )
    if provider is None:
        raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")
    return provider
