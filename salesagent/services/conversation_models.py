"""
Plain dataclasses for conversation state (detached from SQLAlchemy).

ConversationContext is what the coordinator hands out, caches and persists.
Both types round-trip through plain JSON-compatible dicts so they can be
stored in Redis or returned from the HTTP layer without touching ORM objects.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Language(str, Enum):
    """Languages the sales agent converses in."""

    EN = "EN"
    MS = "MS"
    ZH = "ZH"


class ConversationStage(str, Enum):
    """Sales conversation stages, in progression order."""

    INTRODUCTION = "INTRODUCTION"
    DISCOVERY = "DISCOVERY"
    NEEDS_UNDERSTANDING = "NEEDS_UNDERSTANDING"
    SOLUTION_RECOMMENDATION = "SOLUTION_RECOMMENDATION"
    CONCERN_ADDRESSING = "CONCERN_ADDRESSING"
    FRIENDLY_CLOSE = "FRIENDLY_CLOSE"
    NATURAL_END = "NATURAL_END"


MESSAGE_ROLES = ("user", "assistant", "system")
DEFAULT_INTENT = "general_inquiry"
DEFAULT_TIMEZONE = "Asia/Kuala_Lumpur"

# Persona the agent presents as until a business configures its own
DEFAULT_SALES_PERSONA: Dict[str, Any] = {
    "salesperson_name": "Sarah",
    "company_name": "Your Business",
    "business_description": "Professional services for Malaysian customers",
    "company_values": "Quality, Trust, Customer Satisfaction",
    "product_category": "General Services",
    "target_demographic": "Malaysian customers",
    "price_range": "Competitive pricing",
}


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value))


@dataclass(frozen=True)
class Message:
    """
    One conversation message. Immutable once appended.

    Attributes:
        id: UUID string generated when the message is appended
        role: 'user', 'assistant' or 'system'
        content: Message text
        timestamp: When the message was appended (monotonic per session)
        metadata: Optional free-form mapping (platform, language, ...)
    """
    id: str
    role: str
    content: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata) if self.metadata is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            role=data["role"],
            content=data["content"],
            timestamp=_parse_datetime(data["timestamp"]),
            metadata=data.get("metadata"),
        )


@dataclass
class ConversationContext:
    """
    Conversation state for one chat session.

    Owned by the ConversationService for the duration of a session and
    persisted by the ConversationStore. Instances handed to callers are
    copies; mutating them has no effect on the cache or the store.

    Attributes:
        session_id: Unique session key supplied by the channel
        customer_id: Optional CRM customer id
        language: Language the agent currently replies in
        detected_language_preference: Last language detected from the customer
        current_intent: Free-text intent label
        conversation_stage: Current sales stage
        messages: Ordered history (append order)
        last_activity_at: Last mutation time (monotonic)
        is_active: False once the session has ended
        created_at: When the conversation was created
        ended_at: When end_session ran (None while active)
        timezone: IANA timezone used for customer-facing times
        sales_persona: Salesperson and business profile the agent presents
    """
    session_id: str
    customer_id: Optional[str] = None
    language: Language = Language.EN
    detected_language_preference: Language = Language.EN
    current_intent: str = DEFAULT_INTENT
    conversation_stage: ConversationStage = ConversationStage.INTRODUCTION
    messages: List[Message] = field(default_factory=list)
    last_activity_at: datetime = field(default_factory=utcnow)
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    timezone: str = DEFAULT_TIMEZONE
    sales_persona: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "language": self.language.value,
            "detected_language_preference": self.detected_language_preference.value,
            "current_intent": self.current_intent,
            "conversation_stage": self.conversation_stage.value,
            "messages": [m.to_dict() for m in self.messages],
            "last_activity_at": self.last_activity_at.isoformat(),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "timezone": self.timezone,
            "sales_persona": dict(self.sales_persona),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContext":
        return cls(
            session_id=data["session_id"],
            customer_id=data.get("customer_id"),
            language=Language(data["language"]),
            detected_language_preference=Language(data["detected_language_preference"]),
            current_intent=data["current_intent"],
            conversation_stage=ConversationStage(data["conversation_stage"]),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            last_activity_at=_parse_datetime(data["last_activity_at"]),
            is_active=data.get("is_active", True),
            created_at=_parse_datetime(data["created_at"]),
            ended_at=_parse_datetime(data.get("ended_at")),
            timezone=data.get("timezone", DEFAULT_TIMEZONE),
            sales_persona=dict(data.get("sales_persona") or {}),
        )

    def copy(self) -> "ConversationContext":
        """Independent copy (messages are immutable, so the list is copied shallowly)."""
        return ConversationContext(
            session_id=self.session_id,
            customer_id=self.customer_id,
            language=self.language,
            detected_language_preference=self.detected_language_preference,
            current_intent=self.current_intent,
            conversation_stage=self.conversation_stage,
            messages=list(self.messages),
            last_activity_at=self.last_activity_at,
            is_active=self.is_active,
            created_at=self.created_at,
            ended_at=self.ended_at,
            timezone=self.timezone,
            sales_persona=dict(self.sales_persona),
        )
