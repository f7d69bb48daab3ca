"""Configuration modules for the Sales Agent service."""

from .settings import (
    ConversationSettings,
    get_conversation_settings,
    reset_conversation_settings,
)
from .logging_config import (
    configure_logging,
    get_logger,
)

__all__ = [
    'ConversationSettings',
    'get_conversation_settings',
    'reset_conversation_settings',
    'configure_logging',
    'get_logger',
]
