from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


MESSAGE_TYPES = {"text", "prediction", "follow_up", "clarification"}


class ConversationStage(str, Enum):
    """Informal label for where a conversation is.

    Typical progression: initial -> symptom_collection -> clarification or
    prediction -> follow_up -> ongoing. Transitions are reported by the
    symptom oracle and are not validated; a successful prediction forces
    ``prediction``.
    """

    INITIAL = "initial"
    SYMPTOM_COLLECTION = "symptom_collection"
    CLARIFICATION = "clarification"
    PREDICTION = "prediction"
    FOLLOW_UP = "follow_up"
    ONGOING = "ongoing"

    @classmethod
    def coerce(cls, value: Any, default: "ConversationStage | None" = None) -> "ConversationStage | None":
        if isinstance(value, cls):
            return value
        candidate = str(value or "").strip().lower()
        for stage in cls:
            if stage.value == candidate:
                return stage
        return default


class TurnValidationError(ValueError):
    pass


@dataclass
class Location:
    state_code: str | None = None
    lga_code: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return {"state_code": self.state_code, "lga_code": self.lga_code}


@dataclass
class UserProfile:
    age_group: str | None = None
    gender: str | None = None
    occupation: str | None = None
    medical_history: list[str] = field(default_factory=list)
    current_medications: list[str] = field(default_factory=list)


@dataclass
class ChatTurn:
    user_id: str
    message: str
    conversation_id: str | None = None
    location: Location | None = None
    user_profile: UserProfile | None = None

    def validate(self) -> None:
        if not (self.user_id or "").strip() or not (self.message or "").strip():
            raise TurnValidationError("User ID and message are required")


def _coerce_confidence(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class PredictionResult:
    illness: str
    confidence: float | None = None
    urgency: str | None = None
    severity: str | None = None
    advice: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "PredictionResult | None":
        if not isinstance(payload, dict):
            return None
        illness = str(payload.get("illness") or "").strip()
        if not illness:
            return None
        return cls(
            illness=illness,
            confidence=_coerce_confidence(payload.get("confidence")),
            urgency=payload.get("urgency"),
            severity=payload.get("severity"),
            advice=payload.get("advice"),
            raw=dict(payload),
        )

    def as_payload(self) -> dict[str, Any]:
        payload = dict(self.raw)
        payload.update(
            {
                "illness": self.illness,
                "confidence": self.confidence,
                "urgency": self.urgency,
                "severity": self.severity,
                "advice": self.advice,
            }
        )
        return payload


@dataclass
class OracleReply:
    content: str
    message_type: str = "text"
    extracted_symptoms: list[str] = field(default_factory=list)
    conversation_stage: str = ConversationStage.ONGOING.value
    needs_clarification: bool | None = None
    should_predict: bool = False
    follow_up_questions: list[str] = field(default_factory=list)
    prediction_data: dict[str, Any] | None = None
    degraded: bool = False


@dataclass
class ComposedResponse:
    content: str
    message_type: str
    prediction_data: dict[str, Any] | None = None
    follow_up_questions: list[str] = field(default_factory=list)
    confidence: float | None = None
    urgency: str | None = None
    severity: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "message_type": self.message_type,
            "prediction_data": self.prediction_data,
            "follow_up_questions": self.follow_up_questions,
            "confidence": self.confidence,
            "urgency": self.urgency,
            "severity": self.severity,
        }


@dataclass
class ConversationContext:
    extracted_symptoms: list[str] = field(default_factory=list)
    current_concerns: list[str] = field(default_factory=list)
    conversation_stage: ConversationStage = ConversationStage.INITIAL

    @classmethod
    def from_row(cls, row: dict[str, Any] | None) -> "ConversationContext":
        if not row:
            return cls()
        return cls(
            extracted_symptoms=list(row.get("extracted_symptoms") or []),
            current_concerns=list(row.get("current_concerns") or []),
            conversation_stage=ConversationStage.coerce(
                row.get("conversation_stage"), ConversationStage.INITIAL
            ),
        )


@dataclass(frozen=True)
class PredictionEvent:
    user_id: str
    conversation_id: str
    message_id: str
    prediction: PredictionResult


@dataclass
class TurnOutcome:
    conversation_id: str
    message_id: str
    response: ComposedResponse
    context: ConversationContext
    needs_clarification: bool
    escalated: bool = False
    # Set when the saved reply is a prediction; dispatched after the response.
    prediction_event: PredictionEvent | None = None

    def as_envelope(self) -> dict[str, Any]:
        return {
            "success": True,
            "conversation_id": self.conversation_id,
            "message_id": self.message_id,
            "response": self.response.as_payload(),
            "context": {
                "extracted_symptoms": list(self.context.extracted_symptoms),
                "conversation_stage": self.context.conversation_stage.value,
                "needs_clarification": self.needs_clarification,
            },
        }
