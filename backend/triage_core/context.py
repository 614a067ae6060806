from __future__ import annotations

from typing import Iterable

from .models import ConversationContext, ConversationStage, PredictionResult


def merge_symptoms(
    current: Iterable[str] | None,
    reported: Iterable[str] | None,
    previous: Iterable[str] | None,
) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for source in (current, reported, previous):
        for symptom in source or []:
            if symptom in seen:
                continue
            seen.add(symptom)
            merged.append(symptom)
    return merged


def merge_concerns(
    previous: Iterable[str] | None,
    message_type: str,
    prediction: PredictionResult | None,
) -> list[str]:
    concerns = [concern for concern in previous or [] if concern]
    if message_type == "prediction" and prediction is not None and prediction.illness:
        # Repeats across turns are kept.
        concerns.append(prediction.illness)
    return concerns


def resolve_stage(
    previous: ConversationStage | None,
    reported: str | None,
    predicted: bool,
) -> ConversationStage:
    if predicted:
        return ConversationStage.PREDICTION
    stage = ConversationStage.coerce(reported)
    if stage is not None:
        return stage
    return previous or ConversationStage.ONGOING


def build_context_update(
    *,
    previous: ConversationContext,
    merged_symptoms: list[str],
    message_type: str,
    prediction: PredictionResult | None,
    reported_stage: str | None,
) -> ConversationContext:
    return ConversationContext(
        extracted_symptoms=list(merged_symptoms),
        current_concerns=merge_concerns(previous.current_concerns, message_type, prediction),
        conversation_stage=resolve_stage(
            previous.conversation_stage,
            reported_stage,
            predicted=message_type == "prediction" and prediction is not None,
        ),
    )
