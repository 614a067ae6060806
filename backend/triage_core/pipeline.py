from __future__ import annotations

import logging
from typing import Any, Protocol

from memory import ConversationStore, PersistenceError

from .composer import compose_response
from .context import build_context_update, merge_symptoms
from .escalation import decide_escalation
from .models import (
    ChatTurn,
    ConversationContext,
    Location,
    OracleReply,
    PredictionEvent,
    PredictionResult,
    TurnOutcome,
    UserProfile,
)
from .sessions import ConversationSessionManager
from .symptoms import extract_symptoms

logger = logging.getLogger(__name__)


class SymptomOracleClient(Protocol):
    def respond(
        self,
        *,
        message: str,
        history: list[dict[str, Any]],
        context: ConversationContext,
        user_profile: UserProfile | None,
        location: Location | None,
    ) -> OracleReply: ...


class PredictionOracleClient(Protocol):
    def predict(
        self,
        *,
        symptoms: list[str],
        user_id: str,
        user_profile: UserProfile | None,
        location: Location | None,
    ) -> PredictionResult | None: ...


class TriagePipeline:
    """One conversational turn, run strictly in sequence.

    Persistence failures on the required reads and writes propagate to the
    caller. Oracle and prediction failures degrade to fallbacks. Writes that
    already happened are not rolled back. After-prediction side effects are
    not run here: the outcome carries a ``prediction_event`` for the caller
    to dispatch once the reply is on its way.
    """

    def __init__(
        self,
        *,
        store: ConversationStore,
        sessions: ConversationSessionManager,
        oracle: SymptomOracleClient,
        predictor: PredictionOracleClient,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.oracle = oracle
        self.predictor = predictor

    def handle_turn(self, turn: ChatTurn) -> TurnOutcome:
        turn.validate()

        session = self.sessions.resolve(
            user_id=turn.user_id,
            message=turn.message,
            conversation_id=turn.conversation_id,
            location=turn.location,
        )
        conversation_id = session.conversation_id

        conversation = self.store.get_conversation_with_messages(conversation_id)
        history = list(conversation.get("messages") or [])
        previous = ConversationContext.from_row(self.store.get_context(conversation_id))
        logger.info(
            "loaded conversation %s with %s messages, stage %s",
            conversation_id,
            len(history),
            previous.conversation_stage.value,
        )

        self.store.add_message(
            conversation_id=conversation_id,
            user_id=turn.user_id,
            content=turn.message,
            role="user",
            message_type="text",
        )
        message_count = int(conversation.get("total_messages") or len(history)) + 1

        current_symptoms = extract_symptoms(turn.message)
        reply = self.oracle.respond(
            message=turn.message,
            history=history,
            context=previous,
            user_profile=turn.user_profile,
            location=turn.location,
        )
        merged = merge_symptoms(current_symptoms, reply.extracted_symptoms, previous.extracted_symptoms)

        decision = decide_escalation(
            message_count=message_count,
            symptom_count=len(merged),
            should_predict=reply.should_predict,
            needs_clarification=reply.needs_clarification,
        )
        logger.info(
            "escalation decision for %s: %s (%s messages, %s symptoms [%s])",
            conversation_id,
            decision.reason,
            message_count,
            len(merged),
            ", ".join(merged),
        )

        prediction: PredictionResult | None = None
        if decision.escalate:
            prediction = self.predictor.predict(
                symptoms=merged,
                user_id=turn.user_id,
                user_profile=turn.user_profile,
                location=turn.location,
            )
            if prediction is None:
                logger.warning("prediction unavailable for %s; keeping oracle reply", conversation_id)
            else:
                logger.info("prediction for %s: %s", conversation_id, prediction.illness)

        response = compose_response(reply, prediction)
        message_id = self.store.add_message(
            conversation_id=conversation_id,
            user_id=turn.user_id,
            content=response.content,
            role="assistant",
            message_type=response.message_type,
            prediction_data=response.prediction_data,
            follow_up_questions=response.follow_up_questions,
        )

        reported_prediction = prediction or PredictionResult.from_payload(response.prediction_data)
        updated = build_context_update(
            previous=previous,
            merged_symptoms=merged,
            message_type=response.message_type,
            prediction=reported_prediction,
            reported_stage=reply.conversation_stage,
        )
        try:
            self.store.upsert_context(
                conversation_id=conversation_id,
                extracted_symptoms=updated.extracted_symptoms,
                current_concerns=updated.current_concerns,
                conversation_stage=updated.conversation_stage.value,
            )
        except PersistenceError:
            logger.error("failed to update context for %s", conversation_id, exc_info=True)

        event: PredictionEvent | None = None
        if response.message_type == "prediction" and reported_prediction is not None:
            event = PredictionEvent(
                user_id=turn.user_id,
                conversation_id=conversation_id,
                message_id=message_id,
                prediction=reported_prediction,
            )

        return TurnOutcome(
            conversation_id=conversation_id,
            message_id=message_id,
            response=response,
            context=updated,
            needs_clarification=bool(reply.needs_clarification),
            escalated=prediction is not None,
            prediction_event=event,
        )
