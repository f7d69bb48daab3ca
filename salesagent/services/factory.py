"""
Factory functions for service initialization.

Wires the ConversationService to its collaborators from settings, so the
API server and scripts build it the same way.

Usage:
    service = create_conversation_service()
    await service.start()
"""

from typing import Optional

from salesagent.config.logging_config import get_logger
from salesagent.config.settings import ConversationSettings, get_conversation_settings
from salesagent.services.conversation_cache import (
    ConversationCache,
    InMemoryConversationCache,
    RedisConversationCache,
)
from salesagent.services.conversation_service import ConversationService
from salesagent.services.conversation_store import ConversationStore, SqlConversationStore
from salesagent.services.language import LanguageDetector

logger = get_logger(__name__)


def create_conversation_cache(settings: ConversationSettings) -> ConversationCache:
    """Redis when ENABLE_REDIS=true, otherwise the in-memory TTL cache."""
    if settings.redis_enabled:
        logger.info(f"🏭 Using Redis conversation cache ({settings.redis_host}:{settings.redis_port}/{settings.redis_db})")
        return RedisConversationCache.from_url(settings.redis_url)

    logger.info("🏭 Using in-memory conversation cache")
    return InMemoryConversationCache(cleanup_interval_seconds=settings.cache_cleanup_interval_seconds)


def create_conversation_service(
    settings: Optional[ConversationSettings] = None,
    store: Optional[ConversationStore] = None,
    cache: Optional[ConversationCache] = None,
    language_detector: Optional[LanguageDetector] = None,
) -> ConversationService:
    """
    Create a ConversationService.

    Args:
        settings: Settings to use (default: loaded from environment)
        store: Store override (default: SqlConversationStore on DATABASE_URL)
        cache: Cache override (default: chosen from settings)
        language_detector: Optional language detector for chat messages

    Returns:
        ConversationService (not started)
    """
    settings = settings or get_conversation_settings()
    logger.info("🏭 Creating ConversationService via factory...")

    return ConversationService(
        store=store if store is not None else SqlConversationStore(),
        cache=cache if cache is not None else create_conversation_cache(settings),
        language_detector=language_detector,
        session_ttl_seconds=settings.session_ttl_seconds,
        default_timezone=settings.default_timezone,
    )
