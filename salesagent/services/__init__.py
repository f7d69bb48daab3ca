"""
Sales Agent Services Package

This package contains the conversation session layer:
- conversation_service: Session coordinator (cache-aside reads, serialized mutations)
- conversation_store: Durable store contract and implementations (SQLAlchemy, in-memory)
- conversation_cache: Ephemeral TTL cache contract and implementations (memory, Redis)
- conversation_stage: Sales stage progression rules
- session_locks: Per-session FIFO locks
- factory: Service wiring from settings
"""

from .conversation_cache import (
    ConversationCache,
    InMemoryConversationCache,
    RedisConversationCache,
    cache_key,
)
from .conversation_models import ConversationContext, ConversationStage, Language, Message
from .conversation_service import ConversationService
from .conversation_store import ConversationStore, InMemoryConversationStore, SqlConversationStore
from .errors import (
    AlreadyExists,
    ConversationError,
    InvalidTransition,
    NotFound,
    StorageUnavailable,
)
from .factory import create_conversation_service

__all__ = [
    "ConversationService",
    "create_conversation_service",
    "ConversationStore",
    "SqlConversationStore",
    "InMemoryConversationStore",
    "ConversationCache",
    "InMemoryConversationCache",
    "RedisConversationCache",
    "cache_key",
    "ConversationContext",
    "ConversationStage",
    "Language",
    "Message",
    "ConversationError",
    "NotFound",
    "AlreadyExists",
    "InvalidTransition",
    "StorageUnavailable",
]
