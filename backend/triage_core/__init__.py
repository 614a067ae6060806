from .composer import compose_response, render_prediction_message
from .context import build_context_update, merge_concerns, merge_symptoms, resolve_stage
from .escalation import EscalationDecision, decide_escalation, should_escalate
from .hooks import HookRunner
from .models import (
    MESSAGE_TYPES,
    ChatTurn,
    ComposedResponse,
    ConversationContext,
    ConversationStage,
    Location,
    OracleReply,
    PredictionEvent,
    PredictionResult,
    TurnOutcome,
    TurnValidationError,
    UserProfile,
)
from .pipeline import TriagePipeline
from .sessions import ConversationSessionManager, SessionResolution
from .symptoms import extract_symptoms
from .titles import generate_conversation_title

__all__ = [
    "MESSAGE_TYPES",
    "ChatTurn",
    "ComposedResponse",
    "ConversationContext",
    "ConversationSessionManager",
    "ConversationStage",
    "EscalationDecision",
    "HookRunner",
    "Location",
    "OracleReply",
    "PredictionEvent",
    "PredictionResult",
    "SessionResolution",
    "TriagePipeline",
    "TurnOutcome",
    "TurnValidationError",
    "UserProfile",
    "build_context_update",
    "compose_response",
    "decide_escalation",
    "extract_symptoms",
    "generate_conversation_title",
    "merge_concerns",
    "merge_symptoms",
    "render_prediction_message",
    "resolve_stage",
    "should_escalate",
]
