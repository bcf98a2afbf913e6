"""
API routers package.
Each router handles a specific domain of endpoints.
"""

from routers import auth, conversations, messages

__all__ = [
    "auth",
    "conversations",
    "messages",
]
