"""
Configuration module for the chat relay.
Loads environment variables and provides centralized config access.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

# ============================================================
# Centralized Data Paths
# ============================================================
# All user data lives under <project>/data/ for easy backup/deletion.
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database holding users, conversations and messages
SQLITE_DB_PATH = DATA_DIR / "app.db"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    # ============================================================
    # JWT Authentication
    # ============================================================
    jwt_secret_key: str = "your-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 168  # 7 days

    # ============================================================
    # LLM Provider
    # ============================================================
    llm_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"

    # Text-only turns stream from the chat model; attached files go to
    # the file-capable model through the Responses API.
    chat_model: str = "gpt-3.5-turbo"
    file_model: str = "gpt-4o"
    max_tokens: int = 500
    temperature: float = 0.7

    # ============================================================
    # Retry / Timeouts
    # ============================================================
    provider_max_attempts: int = 3
    provider_retry_delay: float = 1.0  # seconds, multiplied by attempt number
    file_completion_timeout: float = 300.0  # whole-document analysis bound

    # ============================================================
    # Streaming
    # ============================================================
    stream_chunk_delay: float = 0.05  # pacing for simulated file streaming
    keepalive_interval: float = 30.0

    # ============================================================
    # Message limits
    # ============================================================
    max_message_length: int = 10000
    title_max_length: int = 50

    # ============================================================
    # Storage
    # ============================================================
    sqlite_path: str = str(SQLITE_DB_PATH)

    # ============================================================
    # Rate limiting
    # ============================================================
    auth_rate_limit: int = 10
    auth_rate_window: int = 900  # 15 minutes
    message_rate_limit: int = 20
    message_rate_window: int = 60

    # ============================================================
    # Server Configuration
    # ============================================================
    host: str = "0.0.0.0"
    port: int = 8000
    # Also exposes internal error details in error responses
    debug: bool = False

    # ============================================================
    # CORS Configuration
    # ============================================================
    # Comma-separated origins.
    cors_origins: str = "http://localhost:3000,http://localhost:3001"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse the comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reloading env vars on every call.
    """
    return Settings()
