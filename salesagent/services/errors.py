"""
Conversation error taxonomy.

Every failure the coordinator surfaces to callers is a ConversationError.
Cache failures have no error type here: they are logged and swallowed by the
coordinator.
"""

from typing import Optional


class ConversationError(Exception):
    """Base exception for conversation coordinator failures."""

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message)
        self.session_id = session_id


class NotFound(ConversationError):
    """No conversation exists for the session id."""
    pass


class AlreadyExists(ConversationError):
    """A conversation already exists for the session id."""
    pass


class InvalidTransition(ConversationError):
    """Requested stage move is backwards or leaves the terminal stage."""

    def __init__(self, message: str, session_id: Optional[str] = None,
                 current_stage=None, requested_stage=None):
        super().__init__(message, session_id)
        self.current_stage = current_stage
        self.requested_stage = requested_stage


class StorageUnavailable(ConversationError):
    """Durable store could not be reached. Not retried automatically."""
    pass
