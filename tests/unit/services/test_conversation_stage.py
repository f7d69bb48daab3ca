"""
Unit tests for conversation stage progression rules
"""
import pytest

from salesagent.services.conversation_models import ConversationStage
from salesagent.services.conversation_stage import (
    STAGE_ORDER,
    is_terminal,
    stage_rank,
    validate_transition,
)
from salesagent.services.errors import InvalidTransition


def test_stage_order_covers_every_stage():
    assert list(STAGE_ORDER) == list(ConversationStage)
    assert [stage_rank(s) for s in STAGE_ORDER] == list(range(len(STAGE_ORDER)))


def test_only_natural_end_is_terminal():
    assert is_terminal(ConversationStage.NATURAL_END)
    assert not any(is_terminal(s) for s in STAGE_ORDER[:-1])


@pytest.mark.parametrize("current, new", [
    (ConversationStage.INTRODUCTION, ConversationStage.INTRODUCTION),
    (ConversationStage.INTRODUCTION, ConversationStage.DISCOVERY),
    (ConversationStage.INTRODUCTION, ConversationStage.FRIENDLY_CLOSE),
    (ConversationStage.DISCOVERY, ConversationStage.NATURAL_END),
    (ConversationStage.CONCERN_ADDRESSING, ConversationStage.CONCERN_ADDRESSING),
])
def test_forward_and_same_stage_moves_allowed(current, new):
    validate_transition(current, new)


@pytest.mark.parametrize("current, new", [
    (ConversationStage.DISCOVERY, ConversationStage.INTRODUCTION),
    (ConversationStage.FRIENDLY_CLOSE, ConversationStage.NEEDS_UNDERSTANDING),
    (ConversationStage.SOLUTION_RECOMMENDATION, ConversationStage.DISCOVERY),
])
def test_backward_moves_rejected(current, new):
    with pytest.raises(InvalidTransition) as exc_info:
        validate_transition(current, new, session_id="s1")

    assert exc_info.value.session_id == "s1"
    assert exc_info.value.current_stage is current
    assert exc_info.value.requested_stage is new


@pytest.mark.parametrize("new", list(ConversationStage))
def test_natural_end_is_terminal_for_any_target(new):
    with pytest.raises(InvalidTransition):
        validate_transition(ConversationStage.NATURAL_END, new)


def test_string_stage_names_accepted():
    validate_transition("INTRODUCTION", "DISCOVERY")
    with pytest.raises(InvalidTransition):
        validate_transition("DISCOVERY", "INTRODUCTION")
