from __future__ import annotations

import itertools

import pytest

from triage_core.context import build_context_update, merge_concerns, merge_symptoms, resolve_stage
from triage_core.escalation import decide_escalation, should_escalate
from triage_core.models import ConversationContext, ConversationStage, PredictionResult


def test_merge_symptoms_orders_current_then_reported_then_previous():
    merged = merge_symptoms(["fever", "cough"], ["cough", "chills"], ["headache", "fever"])
    assert merged == ["fever", "cough", "chills", "headache"]


@pytest.mark.parametrize(
    "current,reported,previous",
    [
        ([], [], []),
        (["a"], ["a"], ["a"]),
        (["a", "b"], ["b", "c"], ["c", "d", "a"]),
        (["x", "x"], None, ["y", "x"]),
    ],
)
def test_merge_symptoms_is_a_set_union(current, reported, previous):
    merged = merge_symptoms(current, reported, previous)
    expected = set(current or []) | set(reported or []) | set(previous or [])
    assert set(merged) == expected
    assert len(merged) == len(expected)


def test_merge_concerns_appends_illness_only_for_predictions():
    prediction = PredictionResult(illness="Malaria")
    assert merge_concerns(["Malaria"], "prediction", prediction) == ["Malaria", "Malaria"]
    assert merge_concerns(["Malaria"], "text", prediction) == ["Malaria"]
    assert merge_concerns(["", "Typhoid", None], "text", None) == ["Typhoid"]


def test_resolve_stage_prefers_prediction_then_reported_then_previous():
    assert resolve_stage(ConversationStage.INITIAL, "follow_up", predicted=True) is ConversationStage.PREDICTION
    assert resolve_stage(ConversationStage.INITIAL, "clarification", predicted=False) is ConversationStage.CLARIFICATION
    assert resolve_stage(ConversationStage.FOLLOW_UP, "made-up", predicted=False) is ConversationStage.FOLLOW_UP
    assert resolve_stage(None, None, predicted=False) is ConversationStage.ONGOING


def test_build_context_update_combines_merger_outputs():
    previous = ConversationContext(
        extracted_symptoms=["fever"],
        current_concerns=["Typhoid"],
        conversation_stage=ConversationStage.SYMPTOM_COLLECTION,
    )
    updated = build_context_update(
        previous=previous,
        merged_symptoms=["chills", "fever"],
        message_type="prediction",
        prediction=PredictionResult(illness="Malaria"),
        reported_stage="symptom_collection",
    )
    assert updated.extracted_symptoms == ["chills", "fever"]
    assert updated.current_concerns == ["Typhoid", "Malaria"]
    assert updated.conversation_stage is ConversationStage.PREDICTION


def test_escalates_at_four_messages_even_when_other_triggers_are_off():
    assert should_escalate(
        message_count=4,
        symptom_count=1,
        should_predict=False,
        needs_clarification=True,
    )
    assert not should_escalate(
        message_count=3,
        symptom_count=1,
        should_predict=False,
        needs_clarification=True,
    )


@pytest.mark.parametrize(
    "message_count,should_predict,needs_clarification",
    list(itertools.product([1, 4, 10], [True, False, None], [True, False, None])),
)
def test_never_escalates_without_symptoms(message_count, should_predict, needs_clarification):
    decision = decide_escalation(
        message_count=message_count,
        symptom_count=0,
        should_predict=should_predict,
        needs_clarification=needs_clarification,
    )
    assert decision.escalate is False
    assert decision.reason == "no_symptoms"


def test_three_symptoms_trigger_escalation():
    decision = decide_escalation(
        message_count=1,
        symptom_count=3,
        should_predict=False,
        needs_clarification=True,
    )
    assert decision.escalate
    assert decision.reason == "symptom_count"


def test_oracle_request_triggers_escalation():
    decision = decide_escalation(
        message_count=1,
        symptom_count=1,
        should_predict=True,
        needs_clarification=True,
    )
    assert decision.escalate
    assert decision.reason == "oracle_requested"


def test_missing_clarification_flag_counts_as_not_needed():
    decision = decide_escalation(
        message_count=1,
        symptom_count=1,
        should_predict=False,
        needs_clarification=None,
    )
    assert decision.escalate
    assert decision.reason == "clarification_not_needed"


def test_clarification_needed_holds_back_escalation_early_in_conversation():
    assert not should_escalate(
        message_count=1,
        symptom_count=2,
        should_predict=False,
        needs_clarification=True,
    )
