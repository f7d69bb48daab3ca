"""
Sales Agent - Database Module

Exports models, session management, and utilities.

Usage:
    from salesagent.database import Conversation, ConversationMessage
    from salesagent.database import get_db_session, init_db
"""

from salesagent.database.models import Base, Conversation, ConversationMessage
from salesagent.database.session import (
    check_db_connection,
    create_engine_for,
    create_session_factory,
    dispose_engine,
    get_db_session,
    session_scope,
    init_db,
)

__all__ = [
    # Models
    "Base",
    "Conversation",
    "ConversationMessage",
    # Session management
    "get_db_session",
    "session_scope",
    "create_engine_for",
    "create_session_factory",
    "init_db",
    "dispose_engine",
    "check_db_connection",
]
