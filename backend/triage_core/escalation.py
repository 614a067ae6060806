from __future__ import annotations

from dataclasses import dataclass

MESSAGE_COUNT_TRIGGER = 4
SYMPTOM_COUNT_TRIGGER = 3


@dataclass(frozen=True)
class EscalationDecision:
    escalate: bool
    reason: str


def decide_escalation(
    *,
    message_count: int,
    symptom_count: int,
    should_predict: bool | None,
    needs_clarification: bool | None,
) -> EscalationDecision:
    """Decide whether this turn calls the prediction oracle.

    Any one trigger is enough, but only when at least one symptom has been
    collected. ``needs_clarification`` left unset by the oracle counts as
    "no clarification needed".
    """
    if symptom_count < 1:
        return EscalationDecision(False, "no_symptoms")
    if should_predict:
        return EscalationDecision(True, "oracle_requested")
    if message_count >= MESSAGE_COUNT_TRIGGER:
        return EscalationDecision(True, "message_count")
    if symptom_count >= SYMPTOM_COUNT_TRIGGER:
        return EscalationDecision(True, "symptom_count")
    if not needs_clarification:
        return EscalationDecision(True, "clarification_not_needed")
    return EscalationDecision(False, "needs_clarification")


def should_escalate(
    *,
    message_count: int,
    symptom_count: int,
    should_predict: bool | None,
    needs_clarification: bool | None,
) -> bool:
    return decide_escalation(
        message_count=message_count,
        symptom_count=symptom_count,
        should_predict=should_predict,
        needs_clarification=needs_clarification,
    ).escalate
