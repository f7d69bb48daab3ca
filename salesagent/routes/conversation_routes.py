"""
Conversation API Routes

FastAPI routes exposing the conversation session coordinator: create, read,
append messages, process inbound chat messages, move stages, update the sales
persona, end sessions and read analytics.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from salesagent.config.logging_config import get_logger
from salesagent.services.conversation_models import (
    ConversationContext,
    ConversationStage,
    Language,
    Message,
)
from salesagent.services.conversation_service import ConversationService
from salesagent.services.errors import (
    AlreadyExists,
    ConversationError,
    InvalidTransition,
    NotFound,
    StorageUnavailable,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def get_conversation_service(request: Request) -> ConversationService:
    """FastAPI dependency returning the service wired by the app factory."""
    return request.app.state.conversation_service


# ============================================================================
# Request/Response Models
# ============================================================================

class ConversationCreateRequest(BaseModel):
    """Request body for creating a conversation"""

    session_id: str = Field(..., min_length=1, max_length=255, description="Session identifier")
    customer_id: Optional[str] = Field(None, max_length=100, description="CRM customer id")
    language: Language = Field(Language.EN, description="Initial conversation language")


class MessageRequest(BaseModel):
    """Request body for appending a message"""

    role: str = Field(..., description="Message role (user, assistant, system)")
    content: str = Field(..., min_length=1, description="Message content")
    metadata: Optional[Dict[str, Any]] = None


class ChatMessageRequest(BaseModel):
    """Inbound customer message from a chat platform"""

    message: str = Field(..., min_length=1, description="Customer message text")
    customer_id: Optional[str] = Field(None, max_length=100)
    language: Optional[Language] = Field(None, description="Explicit language (skips detection)")
    platform: Optional[str] = Field(None, max_length=50, description="Channel (whatsapp, web, ...)")
    metadata: Optional[Dict[str, Any]] = None


class StageUpdateRequest(BaseModel):
    """Request body for moving a conversation to another stage"""

    stage: ConversationStage


class SalesPersonaUpdateRequest(BaseModel):
    """Partial sales persona update (omitted fields keep their value)"""

    salesperson_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=200)
    business_description: Optional[str] = None
    company_values: Optional[str] = None
    product_category: Optional[str] = Field(None, max_length=100)
    current_promotion_details: Optional[str] = None
    target_demographic: Optional[str] = None
    price_range: Optional[str] = Field(None, max_length=100)


class MessageResponse(BaseModel):
    """Response model for a conversation message"""

    id: str
    role: str
    content: str
    timestamp: str
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(**message.to_dict())


class ConversationResponse(BaseModel):
    """Response model for a conversation context"""

    session_id: str
    customer_id: Optional[str]
    language: Language
    detected_language_preference: Language
    current_intent: str
    conversation_stage: ConversationStage
    messages: List[MessageResponse]
    last_activity_at: str
    is_active: bool
    created_at: str
    ended_at: Optional[str]
    timezone: str
    sales_persona: Dict[str, Any]

    @classmethod
    def from_context(cls, context: ConversationContext) -> "ConversationResponse":
        return cls(**context.to_dict())


class AnalyticsResponse(BaseModel):
    """Response model for conversation analytics"""

    session_id: str
    total_messages: int
    messages_by_role: Dict[str, int]
    duration_ms: int
    language: Language
    stage: ConversationStage
    is_active: bool


def _to_http_error(e: ConversationError) -> HTTPException:
    """Map a coordinator failure to an HTTP error."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (AlreadyExists, InvalidTransition)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, StorageUnavailable):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# ============================================================================
# Routes
# ============================================================================

@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Conversation",
    description="Start a new conversation for a session"
)
async def create_conversation(
    request: ConversationCreateRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Create a conversation.

    Raises:
        409: Conversation already exists
        503: Store unavailable
    """
    try:
        context = await service.create_context(
            session_id=request.session_id,
            customer_id=request.customer_id,
            language=request.language,
        )
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)


@router.get(
    "/{session_id}",
    response_model=ConversationResponse,
    summary="Get Conversation",
    description="Get the conversation context for a session"
)
async def get_conversation(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Get a conversation.

    Raises:
        404: Conversation not found
    """
    try:
        context = await service.get_context(session_id)
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)


@router.post(
    "/{session_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Message",
    description="Append a message to a conversation"
)
async def add_message(
    session_id: str,
    request: MessageRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Append a message.

    Raises:
        400: Invalid role
        404: Conversation not found (non-user roles only)
    """
    try:
        message = await service.append_message(
            session_id=session_id,
            role=request.role,
            content=request.content,
            metadata=request.metadata,
        )
        return MessageResponse.from_message(message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConversationError as e:
        raise _to_http_error(e)


@router.post(
    "/{session_id}/chat",
    response_model=ConversationResponse,
    summary="Process Chat Message",
    description="Record an inbound customer message (creates the conversation if needed)"
)
async def process_chat_message(
    session_id: str,
    request: ChatMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    try:
        context = await service.process_chat_message(
            session_id=session_id,
            message=request.message,
            customer_id=request.customer_id,
            language=request.language,
            platform=request.platform,
            metadata=request.metadata,
        )
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)


@router.put(
    "/{session_id}/stage",
    response_model=ConversationResponse,
    summary="Set Stage",
    description="Move a conversation forward to another stage"
)
async def set_stage(
    session_id: str,
    request: StageUpdateRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Set the conversation stage.

    Raises:
        404: Conversation not found
        409: Backwards move, or conversation already ended
    """
    try:
        context = await service.set_stage(session_id, request.stage)
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)


@router.post(
    "/{session_id}/end",
    response_model=ConversationResponse,
    summary="End Conversation",
    description="End a conversation (idempotent)"
)
async def end_conversation(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service),
):
    try:
        context = await service.end_session(session_id)
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)


@router.get(
    "/{session_id}/analytics",
    response_model=AnalyticsResponse,
    summary="Conversation Analytics",
    description="Message counts, duration and stage for a conversation"
)
async def get_conversation_analytics(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service),
):
    try:
        return AnalyticsResponse(**await service.get_conversation_analytics(session_id))
    except ConversationError as e:
        raise _to_http_error(e)


@router.put(
    "/{session_id}/sales-persona",
    response_model=ConversationResponse,
    summary="Update Sales Persona",
    description="Merge salesperson and business details into the conversation's sales persona"
)
async def update_sales_persona(
    session_id: str,
    request: SalesPersonaUpdateRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Update the sales persona.

    Raises:
        404: Conversation not found
    """
    try:
        context = await service.update_sales_persona(
            session_id, request.model_dump(exclude_none=True)
        )
        return ConversationResponse.from_context(context)
    except ConversationError as e:
        raise _to_http_error(e)
