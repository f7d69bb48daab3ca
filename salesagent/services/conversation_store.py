"""
Durable conversation store.

Authoritative home of conversation contexts and their messages, keyed by
session id. The coordinator only talks to it through the ConversationStore
protocol:

    find(session_id)  -> ConversationContext | None
    create(context)   -> ConversationContext
    update(context)   -> ConversationContext

Implementations:
- SqlConversationStore: SQLAlchemy async ORM (PostgreSQL in production)
- InMemoryConversationStore: process-local, for development and tests
"""

from contextlib import AbstractAsyncContextManager
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salesagent.config.logging_config import get_logger
from salesagent.database.models import Conversation, ConversationMessage
from salesagent.database.session import get_db_session
from salesagent.services.conversation_models import (
    ConversationContext,
    ConversationStage,
    Language,
    Message,
    as_utc,
)
from salesagent.services.errors import AlreadyExists, NotFound, StorageUnavailable

logger = get_logger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@runtime_checkable
class ConversationStore(Protocol):
    """Durable storage for conversation contexts."""

    async def find(self, session_id: str) -> Optional[ConversationContext]:
        """Load a context with its messages (oldest first), or None."""
        ...

    async def create(self, context: ConversationContext) -> ConversationContext:
        """Insert a new context. Raises AlreadyExists on duplicate session id."""
        ...

    async def update(self, context: ConversationContext) -> ConversationContext:
        """Persist scalar fields and any messages not stored yet."""
        ...


class SqlConversationStore:
    """
    SQLAlchemy-backed conversation store.

    Every database or connection failure is reported as StorageUnavailable so
    the coordinator can abort the operation before touching the cache.
    """

    def __init__(self, session_scope: Optional[SessionScope] = None):
        self._session_scope = session_scope or get_db_session

    async def find(self, session_id: str) -> Optional[ConversationContext]:
        try:
            async with self._session_scope() as db:
                row = await self._load_row(db, session_id)
                if row is None:
                    return None
                context = _row_to_context(row)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"💥 Error loading conversation {session_id[:8]}... from DB: {e}")
            raise StorageUnavailable(f"Conversation store unavailable: {e}", session_id) from e

        logger.debug(
            f"📡 Loaded conversation {session_id[:8]}... from DB "
            f"({len(context.messages)} messages)"
        )
        return context

    async def create(self, context: ConversationContext) -> ConversationContext:
        try:
            async with self._session_scope() as db:
                row = Conversation(
                    session_id=context.session_id,
                    customer_id=context.customer_id,
                    language=context.language.value,
                    detected_language=context.detected_language_preference.value,
                    current_intent=context.current_intent,
                    conversation_stage=context.conversation_stage.value,
                    timezone=context.timezone,
                    is_active=context.is_active,
                    sales_persona=dict(context.sales_persona),
                    created_at=context.created_at,
                    last_activity_at=context.last_activity_at,
                    ended_at=context.ended_at,
                )
                row.messages = [_message_to_row(m) for m in context.messages]
                db.add(row)
        except IntegrityError as e:
            raise AlreadyExists(
                f"Conversation {context.session_id} already exists", context.session_id
            ) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"💥 Error creating conversation {context.session_id[:8]}...: {e}")
            raise StorageUnavailable(f"Conversation store unavailable: {e}", context.session_id) from e

        logger.info(f"✅ [DB_INSERT] Created conversation {context.session_id[:8]}...")
        return context.copy()

    async def update(self, context: ConversationContext) -> ConversationContext:
        try:
            async with self._session_scope() as db:
                row = await self._load_row(db, context.session_id)
                if row is None:
                    raise NotFound(f"Conversation {context.session_id} not found", context.session_id)

                row.customer_id = context.customer_id
                row.language = context.language.value
                row.detected_language = context.detected_language_preference.value
                row.current_intent = context.current_intent
                row.conversation_stage = context.conversation_stage.value
                row.timezone = context.timezone
                row.is_active = context.is_active
                row.sales_persona = dict(context.sales_persona)
                row.last_activity_at = context.last_activity_at
                row.ended_at = context.ended_at

                stored_ids = {m.id for m in row.messages}
                new_messages = [m for m in context.messages if m.id not in stored_ids]
                for message in new_messages:
                    db.add(_message_to_row(message, conversation_id=row.id))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"💥 Error updating conversation {context.session_id[:8]}...: {e}")
            raise StorageUnavailable(f"Conversation store unavailable: {e}", context.session_id) from e

        logger.debug(
            f"💾 [DB_UPDATE] Conversation {context.session_id[:8]}... "
            f"(stage={context.conversation_stage.value}, new_messages={len(new_messages)})"
        )
        return context.copy()

    @staticmethod
    async def _load_row(db: AsyncSession, session_id: str) -> Optional[Conversation]:
        result = await db.execute(
            select(Conversation)
            .options(selectinload(Conversation.messages))
            .where(Conversation.session_id == session_id)
        )
        return result.scalar_one_or_none()


class InMemoryConversationStore:
    """
    Process-local conversation store.

    Keeps independent copies so callers cannot mutate stored state in place.
    """

    def __init__(self):
        self._contexts: Dict[str, ConversationContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    async def find(self, session_id: str) -> Optional[ConversationContext]:
        context = self._contexts.get(session_id)
        return context.copy() if context else None

    async def create(self, context: ConversationContext) -> ConversationContext:
        if context.session_id in self._contexts:
            raise AlreadyExists(f"Conversation {context.session_id} already exists", context.session_id)
        self._contexts[context.session_id] = context.copy()
        return context.copy()

    async def update(self, context: ConversationContext) -> ConversationContext:
        if context.session_id not in self._contexts:
            raise NotFound(f"Conversation {context.session_id} not found", context.session_id)
        self._contexts[context.session_id] = context.copy()
        return context.copy()


def _message_to_row(message: Message, conversation_id=None) -> ConversationMessage:
    return ConversationMessage(
        id=message.id,
        conversation_id=conversation_id,
        role=message.role,
        content=message.content,
        timestamp=message.timestamp,
        message_metadata=message.metadata,
    )


def _row_to_context(row: Conversation) -> ConversationContext:
    """Copy an ORM row into a detached ConversationContext."""
    messages = sorted(
        (
            Message(
                id=m.id,
                role=m.role,
                content=m.content,
                timestamp=as_utc(m.timestamp),
                metadata=m.message_metadata,
            )
            for m in row.messages
        ),
        key=lambda m: m.timestamp,
    )
    return ConversationContext(
        session_id=row.session_id,
        customer_id=row.customer_id,
        language=Language(row.language),
        detected_language_preference=Language(row.detected_language),
        current_intent=row.current_intent,
        conversation_stage=ConversationStage(row.conversation_stage),
        messages=messages,
        last_activity_at=as_utc(row.last_activity_at),
        is_active=row.is_active,
        created_at=as_utc(row.created_at),
        ended_at=as_utc(row.ended_at) if row.ended_at else None,
        timezone=row.timezone,
        sales_persona=dict(row.sales_persona or {}),
    )
