"""
Event Emitter: ordered delivery of stream events onto the SSE response.

The orchestrator task writes events; the HTTP response generator reads
them. The hand-off is a single-slot queue, so each event is one write and
a slow consumer holds the producer back instead of events piling up.

Guarantees:
  - events leave in the order they were emitted, none dropped
  - nothing is delivered after a terminal event (complete / error)
  - once the consumer has gone away, emit() is a no-op
  - an idle stream gets a keep-alive comment every `keepalive_interval`
    seconds; it carries no event and consumers skip it
"""

import asyncio
import logging
from typing import AsyncGenerator, Tuple

from pydantic import BaseModel

from models.events import KEEPALIVE_FRAME, is_terminal, to_sse

logger = logging.getLogger(__name__)


class EventEmitter:
    """Single-producer, single-consumer event channel for one stream session."""

    def __init__(self, keepalive_interval: float = 30.0):
        self._queue: "asyncio.Queue[Tuple[str, bool]]" = asyncio.Queue(maxsize=1)
        self._keepalive_interval = keepalive_interval
        self._terminated = False
        self._closed = False
        self.sent = 0

    @property
    def terminated(self) -> bool:
        """A terminal event has been emitted."""
        return self._terminated

    @property
    def closed(self) -> bool:
        """The consumer disconnected; writes are discarded."""
        return self._closed

    async def emit(self, event: BaseModel) -> bool:
        """Queue one event for delivery.

        Blocks while the previous event is still waiting to be read.

        Returns:
            True if the event was queued, False if it was discarded
            (consumer gone, or a terminal event was already emitted).
        """
        if self._terminated:
            logger.warning(f"Dropping {getattr(event, 'type', '?')} event emitted after terminal event")
            return False
        if self._closed:
            return False
        terminal = is_terminal(event)
        if terminal:
            self._terminated = True
        await self._queue.put((to_sse(event), terminal))
        self.sent += 1
        return True

    def close(self) -> None:
        """Mark the consumer as gone and release a producer blocked on put()."""
        self._closed = True
        try:
            self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass

    async def stream(self) -> AsyncGenerator[str, None]:
        """Yield SSE frames until the terminal event has been delivered."""
        while True:
            try:
                frame, terminal = await asyncio.wait_for(
                    self._queue.get(), timeout=self._keepalive_interval
                )
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield frame
            if terminal:
                break
