"""
HTTP consumer for the message stream.

Chooses the transport per submission: a query-string GET for text-only
messages, a JSON POST with the Authorization header when a file is
attached. The event stream is read line by line and fed to a
ClientReconstructor; keep-alive comments and unknown records are skipped.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from client.reconstructor import ClientReconstructor, ClientState
from models.events import parse_event
from models.message import AttachedFile, MessageResponse

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/messages/stream"


class StreamClient:
    """Sends messages and reconstructs replies for one authenticated user."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str,
        file_timeout: float = 300.0,
    ):
        self._http = http
        self._token = token
        self.file_timeout = file_timeout

    @property
    def _auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def load_messages(
        self,
        reconstructor: ClientReconstructor,
        conversation_id: str,
    ) -> List[MessageResponse]:
        """Fetch a conversation's persisted messages into the reconstructor."""
        response = await self._http.get(
            f"/api/messages/{conversation_id}", headers=self._auth_header
        )
        response.raise_for_status()
        messages = [MessageResponse.model_validate(m) for m in response.json()]
        reconstructor.conversation_id = conversation_id
        reconstructor.load(messages)
        return messages

    async def send(
        self,
        reconstructor: ClientReconstructor,
        content: str,
        attached_file: Optional[AttachedFile] = None,
    ) -> None:
        """Submit one message and fold the reply stream into `reconstructor`.

        Returns once the reconstructor is idle again, whatever the outcome.
        """
        reconstructor.submit(content)

        try:
            if attached_file is None:
                await self._consume(reconstructor, self._http.stream(
                    "GET",
                    STREAM_PATH,
                    params=self._query(reconstructor, content),
                ))
            else:
                await asyncio.wait_for(
                    self._consume(reconstructor, self._http.stream(
                        "POST",
                        STREAM_PATH,
                        json=self._body(reconstructor, content, attached_file),
                        headers=self._auth_header,
                        timeout=self.file_timeout,
                    )),
                    timeout=self.file_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(f"Message stream exceeded {self.file_timeout}s")
            reconstructor.fail("Request timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Message stream transport failure: {e}")
            reconstructor.fail(str(e))

        if reconstructor.state is ClientState.SENDING:
            reconstructor.fail("Stream closed before completion")

    def _query(self, reconstructor: ClientReconstructor, content: str) -> Dict[str, str]:
        params = {"content": content, "authorization": self._token}
        if reconstructor.conversation_id:
            params["conversationId"] = reconstructor.conversation_id
        return params

    def _body(
        self,
        reconstructor: ClientReconstructor,
        content: str,
        attached_file: AttachedFile,
    ) -> Dict[str, Any]:
        return {
            "conversationId": reconstructor.conversation_id,
            "content": content,
            "filename": attached_file.filename,
            "mimeType": attached_file.mime_type,
            "base64Payload": attached_file.base64_payload,
        }

    async def _consume(self, reconstructor: ClientReconstructor, request) -> None:
        async with request as response:
            if response.status_code >= 400:
                await response.aread()
                reconstructor.fail(message=_error_text(response))
                return

            async for line in response.aiter_lines():
                # Blank separators and ": keep-alive" comments carry no event
                if not line.startswith("data:"):
                    continue
                event = parse_event(line[len("data:"):].strip())
                if event is None:
                    continue
                reconstructor.apply(event)
                if reconstructor.state is ClientState.IDLE:
                    break


def _error_text(response: httpx.Response) -> Optional[str]:
    """User-safe text from a synchronous error response, if it has one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None
