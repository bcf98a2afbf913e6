"""
Persistence layer.
Typed stores over the shared SQLite database.
"""

from store.message_store import MessageStore
from store.user_store import UserStore

__all__ = ["MessageStore", "UserStore"]
