"""
Sales Agent - SQLAlchemy ORM Models

Database schema for conversations and their messages.

Design Decisions:
- UUID primary key for conversations, session_id kept as a unique business key
- Message ids are generated by the coordinator (UUID strings) so a message has
  the same identity in the cache, the store and API responses
- JSON metadata stored as JSONB on PostgreSQL, plain JSON elsewhere
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class Conversation(Base):
    """
    Sales conversation with a customer

    One row per chat session. Holds the scalar state of the conversation
    context; the ordered history lives in conversation_messages.
    """

    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Session identity (client-supplied, unique)
    session_id = Column(String(255), nullable=False, unique=True, index=True)
    customer_id = Column(String(100), nullable=True, index=True)

    # Language mirroring
    language = Column(String(5), nullable=False, default="EN")
    detected_language = Column(String(5), nullable=False, default="EN")

    # Conversation state
    current_intent = Column(String(100), nullable=False, default="general_inquiry")
    conversation_stage = Column(String(40), nullable=False, default="INTRODUCTION")
    timezone = Column(String(64), nullable=False, default="Asia/Kuala_Lumpur")
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Salesperson / business profile presented to the customer
    sales_persona = Column(JSONVariant, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_activity_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.timestamp",
    )

    def __repr__(self):
        return (
            f"<Conversation(session_id='{self.session_id}', "
            f"stage='{self.conversation_stage}', active={self.is_active})>"
        )


class ConversationMessage(Base):
    """
    Single message in a conversation

    Append-only: rows are inserted, never updated.
    """

    __tablename__ = "conversation_messages"

    id = Column(String(36), primary_key=True)
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role = Column(String(20), nullable=False)  # 'user', 'assistant', 'system'
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    message_metadata = Column("metadata", JSONVariant, nullable=True)

    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<ConversationMessage(id='{self.id}', role='{self.role}')>"
