"""
OpenAI LLM provider implementation.
Blocking and streamed chat completions, plus attached-file analysis
through the Responses API.
"""

import json
import logging
from typing import List, Dict, Optional, AsyncGenerator
import httpx

from llm.base import LLMProvider, LLMProviderError, LLMResponse, StreamChunk

logger = logging.getLogger(__name__)


async def _raise_for_provider_error(response: httpx.Response) -> None:
    """Raise LLMProviderError with the upstream error text for non-2xx replies."""
    if not response.is_error:
        return
    await response.aread()
    code = None
    message = response.text
    try:
        err = response.json().get("error") or {}
        if isinstance(err, dict):
            message = err.get("message") or message
            code = err.get("code") or err.get("type")
    except (ValueError, AttributeError):
        pass
    prefix = f"{response.status_code} {code}" if code else str(response.status_code)
    raise LLMProviderError(f"{prefix}: {message}", status_code=response.status_code, code=code)


def _output_text(data: Dict) -> str:
    """Extract the generated text from a Responses API payload."""
    if data.get("output_text"):
        return data["output_text"]
    parts = []
    for item in data.get("output", []):
        if item.get("type") != "message":
            continue
        for content in item.get("content", []):
            if content.get("type") == "output_text":
                parts.append(content.get("text", ""))
    return "".join(parts)


class OpenAIProvider(LLMProvider):
    """
    OpenAI API provider.
    Chat turns use /chat/completions (streamed or blocking); attached files go to
    /responses as an input_file part next to the user's instruction.
    """

    provider_name = "openai"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 file_timeout: float = 300.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, base_url, file_timeout)
        self.base_url = base_url or "https://api.openai.com/v1"
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        """Build request headers with authentication."""
        if not self.api_key:
            raise LLMProviderError("Invalid API key: OPENAI_API_KEY is not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    async def generate(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a complete response from OpenAI."""
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        async with httpx.AsyncClient(timeout=120.0, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._get_headers(),
                json=payload
            )
            await _raise_for_provider_error(response)
            data = response.json()

        choice = data["choices"][0]
        return LLMResponse(
            content=choice["message"].get("content") or "",
            model=model,
            provider=self.provider_name,
            usage=data.get("usage") or {},
            finish_reason=choice.get("finish_reason")
        )

    async def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[StreamChunk, None]:
        """Stream response chunks from OpenAI."""
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "stream": True
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        async with httpx.AsyncClient(timeout=120.0, transport=self._transport) as client:
            async with client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                headers=self._get_headers(),
                json=payload
            ) as response:
                await _raise_for_provider_error(response)

                async for line in response.aiter_lines():
                    if not line or not line.startswith("data: "):
                        continue

                    data_str = line[6:]  # Remove "data: " prefix
                    if data_str == "[DONE]":
                        yield StreamChunk(content="", is_done=True)
                        break

                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError as e:
                        logger.warning(f"Failed to parse chunk: {e}")
                        continue
                    if data.get("error"):
                        raise LLMProviderError(str(data["error"].get("message", data["error"])))
                    choices = data.get("choices") or [{}]
                    content = (choices[0].get("delta") or {}).get("content") or ""
                    if content:
                        yield StreamChunk(content=content)

    async def analyze_file(
        self,
        instruction: str,
        filename: str,
        base64_payload: str,
        model: str,
        mime_type: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Send one file plus instruction to the Responses API."""
        file_data = base64_payload
        if not file_data.startswith("data:"):
            file_data = f"data:{mime_type or 'application/octet-stream'};base64,{base64_payload}"

        payload = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_file", "filename": filename, "file_data": file_data},
                        {"type": "input_text", "text": instruction},
                    ],
                }
            ],
        }

        async with httpx.AsyncClient(timeout=self.file_timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/responses",
                headers=self._get_headers(),
                json=payload
            )
            await _raise_for_provider_error(response)
            data = response.json()

        return LLMResponse(
            content=_output_text(data),
            model=model,
            provider=self.provider_name,
            usage=data.get("usage") or {},
            finish_reason=data.get("status"),
        )
