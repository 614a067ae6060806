from __future__ import annotations

import math

from .models import MESSAGE_TYPES, ComposedResponse, OracleReply, PredictionResult

DEFAULT_ADVICE = "Please rest, stay hydrated, and follow medical advice."


def confidence_percent(confidence: float | None) -> int:
    if confidence is None:
        return 0
    return int(math.floor(float(confidence) * 100 + 0.5))


def render_prediction_message(prediction: PredictionResult) -> str:
    advice = prediction.advice or DEFAULT_ADVICE
    urgency = str(prediction.urgency or "unknown").upper()
    severity = prediction.severity or "unknown"
    return (
        f"Based on your symptoms, you likely have **{prediction.illness}** "
        f"({confidence_percent(prediction.confidence)}% confidence).\n\n"
        f"{advice}\n\n"
        f"**Urgency Level:** {urgency}\n"
        f"**Severity:** {severity}\n\n"
        "Please monitor your symptoms closely. If they worsen or don't improve within 2-3 days, "
        "visit a doctor immediately."
    )


def compose_response(reply: OracleReply, prediction: PredictionResult | None) -> ComposedResponse:
    if prediction is not None:
        return ComposedResponse(
            content=render_prediction_message(prediction),
            message_type="prediction",
            prediction_data=prediction.as_payload(),
            follow_up_questions=list(reply.follow_up_questions),
            confidence=prediction.confidence,
            urgency=prediction.urgency,
            severity=prediction.severity,
        )

    message_type = reply.message_type if reply.message_type in MESSAGE_TYPES else "text"
    oracle_prediction = PredictionResult.from_payload(reply.prediction_data)
    return ComposedResponse(
        content=reply.content,
        message_type=message_type,
        prediction_data=reply.prediction_data,
        follow_up_questions=list(reply.follow_up_questions),
        confidence=oracle_prediction.confidence if oracle_prediction else None,
        urgency=oracle_prediction.urgency if oracle_prediction else None,
        severity=oracle_prediction.severity if oracle_prediction else None,
    )
