"""
FastAPI dependency providers.

Routers resolve their collaborators through these functions so tests can
swap any of them with app.dependency_overrides.
"""

from config import get_settings
from database import get_database
from llm.factory import provider_from_settings
from llm.gateway import ProviderGateway
from store.message_store import MessageStore
from store.user_store import UserStore


def get_user_store() -> UserStore:
    return UserStore(get_database())


def get_message_store() -> MessageStore:
    return MessageStore(get_database())


def get_gateway() -> ProviderGateway:
    """Gateway over the configured provider (built per request)."""
    settings = get_settings()
    return ProviderGateway.from_settings(provider_from_settings(settings), settings)
