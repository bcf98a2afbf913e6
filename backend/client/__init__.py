"""
Consumer side of the message stream.
"""

from client.reconstructor import ClientReconstructor, ClientState, LocalMessage
from client.stream_client import StreamClient

__all__ = [
    "ClientReconstructor",
    "ClientState",
    "LocalMessage",
    "StreamClient",
]
