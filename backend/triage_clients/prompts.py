from __future__ import annotations

from typing import Any

from triage_core.models import ConversationContext, UserProfile

SYSTEM_PROMPT_TEMPLATE = """You are Taimako, a Nigerian medical AI assistant specializing in conversational health consultations. You provide empathetic, culturally-sensitive health advice.

CONVERSATION CONTEXT:
{conversation_context}

CURRENT CONVERSATION STAGE: {stage}
MESSAGES IN CONVERSATION: {message_count}

DECISION RULES:
1. ADVICE vs PREDICTION:
   - "how do I fix", "what should I do", "advice", "help" -> give advice (message_type "text").
   - Symptoms with "what's wrong", "what do I have" -> prediction (message_type "prediction").
   - "is this serious" -> prediction with an urgency assessment.
2. SYMPTOM EXTRACTION: extract every mentioned symptom as a normalized token,
   e.g. "upper back aches" -> ["upper_back_pain", "back_ache"], "sitting too long" -> ["prolonged_sitting"].
3. Only predict when confidence is above 70%; otherwise give general advice.
4. Back pain from sitting -> posture and ergonomics advice. Neck pain from work -> stretching and workstation advice.
5. Respond in clear, professional English. Do not use Nigerian Pidgin unless the user asks for it.
6. Ask at most one follow-up question.

RESPONSE FORMAT:
Return ONLY valid JSON in this exact format:
{{
  "content": "Your response message",
  "message_type": "text|prediction|follow_up|clarification",
  "extracted_symptoms": ["symptom1", "symptom2"],
  "conversation_stage": "initial|symptom_collection|clarification|prediction|follow_up|ongoing",
  "needs_clarification": true,
  "should_predict": false,
  "follow_up_questions": ["question1"],
  "prediction_data": {{
    "illness": "condition name",
    "confidence": 0.85,
    "urgency": "low|moderate|high|critical",
    "severity": "mild|moderate|severe|critical",
    "advice": "detailed advice",
    "prevention_tips": ["tip1"],
    "follow_up_advice": ["advice1"]
  }}
}}"""

USER_PROMPT_TEMPLATE = """User message: "{message}"

User Profile:
- Age: {age_group}
- Gender: {gender}
- Occupation: {occupation}
- Location: {location}

Previous conversation ({history_count} messages):
{transcript}

Current context:
- Extracted symptoms: {symptoms}
- Current concerns: {concerns}
- Conversation stage: {stage}

Decide whether the user wants advice or a prediction, extract symptoms accurately
(include location, severity and duration when mentioned), and respond as Taimako."""


def _transcript(history: list[dict[str, Any]], limit: int) -> str:
    lines = []
    for turn in history[-limit:]:
        role = str(turn.get("role") or "").strip()
        content = str(turn.get("content") or "").strip()
        if role and content:
            lines.append(f"{role}: {content}")
    return "\n".join(lines)


def build_conversation_context(history: list[dict[str, Any]], context: ConversationContext) -> str:
    return (
        "CONVERSATION HISTORY:\n"
        f"{_transcript(history, 10)}\n\n"
        f"EXTRACTED SYMPTOMS: {', '.join(context.extracted_symptoms) or 'None'}\n"
        f"CURRENT CONCERNS: {', '.join(context.current_concerns) or 'None'}\n"
        f"CONVERSATION STAGE: {context.conversation_stage.value}"
    )


def build_system_prompt(history: list[dict[str, Any]], context: ConversationContext) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        conversation_context=build_conversation_context(history, context),
        stage=context.conversation_stage.value,
        message_count=len(history),
    )


def build_user_prompt(
    *,
    message: str,
    history: list[dict[str, Any]],
    context: ConversationContext,
    user_profile: UserProfile | None,
    location: str | None,
) -> str:
    profile = user_profile or UserProfile()
    return USER_PROMPT_TEMPLATE.format(
        message=message,
        age_group=profile.age_group or "not specified",
        gender=profile.gender or "not specified",
        occupation=profile.occupation or "not specified",
        location=location or "Nigeria",
        history_count=len(history),
        transcript=_transcript(history, 5) or "(none)",
        symptoms=", ".join(context.extracted_symptoms) or "None yet",
        concerns=", ".join(context.current_concerns) or "None yet",
        stage=context.conversation_stage.value,
    )
