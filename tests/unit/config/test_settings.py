"""
Tests for conversation settings loading
"""
import pytest

from salesagent.config.settings import (
    ConversationSettings,
    get_conversation_settings,
    reset_conversation_settings,
)
from salesagent.services.conversation_cache import (
    InMemoryConversationCache,
    RedisConversationCache,
)
from salesagent.services.factory import create_conversation_cache, create_conversation_service


ENV_VARS = [
    "DATABASE_URL", "SESSION_TTL_SECONDS", "CACHE_CLEANUP_INTERVAL_SECONDS",
    "ENABLE_REDIS", "REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD", "REDIS_DB",
    "DEFAULT_TIMEZONE", "API_HOST", "API_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_conversation_settings()
    yield
    reset_conversation_settings()


def test_defaults():
    settings = ConversationSettings.from_env()

    assert settings.session_ttl_seconds == 1800
    assert settings.cache_cleanup_interval_seconds == 300
    assert settings.redis_enabled is False
    assert settings.default_timezone == "Asia/Kuala_Lumpur"
    assert settings.api_port == 4900
    assert settings.database_url.startswith("postgresql+asyncpg://")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SESSION_TTL_SECONDS", "60")
    monkeypatch.setenv("ENABLE_REDIS", "TRUE")
    monkeypatch.setenv("REDIS_HOST", "cache.internal")
    monkeypatch.setenv("REDIS_PORT", "6380")
    monkeypatch.setenv("REDIS_DB", "2")

    settings = ConversationSettings.from_env()

    assert settings.session_ttl_seconds == 60
    assert settings.redis_enabled is True
    assert settings.redis_url == "redis://cache.internal:6380/2"


def test_redis_url_with_password(monkeypatch):
    monkeypatch.setenv("REDIS_PASSWORD", "s3cret")
    assert ConversationSettings.from_env().redis_url == "redis://:s3cret@localhost:6379/0"


def test_settings_singleton(monkeypatch):
    first = get_conversation_settings()
    assert get_conversation_settings() is first

    monkeypatch.setenv("API_PORT", "5000")
    reset_conversation_settings()
    assert get_conversation_settings().api_port == 5000


def test_factory_picks_cache_backend(monkeypatch):
    assert isinstance(create_conversation_cache(ConversationSettings.from_env()), InMemoryConversationCache)

    monkeypatch.setenv("ENABLE_REDIS", "true")
    assert isinstance(create_conversation_cache(ConversationSettings.from_env()), RedisConversationCache)


def test_factory_keeps_empty_overrides(store, cache):
    service = create_conversation_service(
        settings=ConversationSettings.from_env(), store=store, cache=cache
    )

    assert service._store is store
    assert service._cache is cache
