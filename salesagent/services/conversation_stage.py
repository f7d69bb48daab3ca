"""
Conversation stage progression rules.

Stages advance forward only (skipping is allowed) and NATURAL_END is terminal.
"""

from typing import Dict, Optional

from salesagent.services.conversation_models import ConversationStage
from salesagent.services.errors import InvalidTransition

STAGE_ORDER = (
    ConversationStage.INTRODUCTION,
    ConversationStage.DISCOVERY,
    ConversationStage.NEEDS_UNDERSTANDING,
    ConversationStage.SOLUTION_RECOMMENDATION,
    ConversationStage.CONCERN_ADDRESSING,
    ConversationStage.FRIENDLY_CLOSE,
    ConversationStage.NATURAL_END,
)

_RANKS: Dict[ConversationStage, int] = {stage: rank for rank, stage in enumerate(STAGE_ORDER)}

TERMINAL_STAGE = ConversationStage.NATURAL_END


def stage_rank(stage: ConversationStage) -> int:
    """Position of a stage in the progression (INTRODUCTION == 0)."""
    return _RANKS[ConversationStage(stage)]


def is_terminal(stage: ConversationStage) -> bool:
    return ConversationStage(stage) is TERMINAL_STAGE


def validate_transition(
    current: ConversationStage,
    new: ConversationStage,
    session_id: Optional[str] = None,
) -> None:
    """
    Check a stage move.

    Raises:
        InvalidTransition: current stage is terminal, or new precedes current
    """
    current = ConversationStage(current)
    new = ConversationStage(new)

    if is_terminal(current):
        raise InvalidTransition(
            f"Conversation already reached {current.value}; cannot move to {new.value}",
            session_id=session_id,
            current_stage=current,
            requested_stage=new,
        )

    if stage_rank(new) < stage_rank(current):
        raise InvalidTransition(
            f"Cannot move conversation back from {current.value} to {new.value}",
            session_id=session_id,
            current_stage=current,
            requested_stage=new,
        )
