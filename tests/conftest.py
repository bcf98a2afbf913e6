import pytest

from config import get_settings


@pytest.fixture(autouse=True)
def _test_settings(tmp_path, monkeypatch):
    """Isolated database file and permissive limits for every test."""
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("STREAM_CHUNK_DELAY", "0")
    monkeypatch.setenv("AUTH_RATE_LIMIT", "1000")
    monkeypatch.setenv("MESSAGE_RATE_LIMIT", "1000")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
