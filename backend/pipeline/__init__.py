"""
Streaming message pipeline.

Turns one user submission into start → chunk* → complete | error events
while persisting the exchange.
"""

from pipeline.emitter import EventEmitter
from pipeline.orchestrator import StreamOrchestrator, split_for_streaming
from pipeline.session import StreamRequest, StreamSession

__all__ = [
    "EventEmitter",
    "StreamOrchestrator",
    "StreamRequest",
    "StreamSession",
    "split_for_streaming",
]
