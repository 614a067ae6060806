from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from triage_core.models import (
    MESSAGE_TYPES,
    ConversationContext,
    ConversationStage,
    Location,
    OracleReply,
    UserProfile,
)

from .prompts import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

FALLBACK_CONTENT = "I'm sorry, I'm having trouble processing your message right now. Can you please try again?"
EMPTY_CONTENT = "I understand you're not feeling well. Can you tell me more about your symptoms?"


class OracleError(RuntimeError):
    pass


def fallback_reply() -> OracleReply:
    return OracleReply(
        content=FALLBACK_CONTENT,
        message_type="text",
        extracted_symptoms=[],
        conversation_stage=ConversationStage.ONGOING.value,
        needs_clarification=False,
        should_predict=False,
        follow_up_questions=[],
        prediction_data=None,
        degraded=True,
    )


def provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


def extract_json_object(raw_text: str) -> dict[str, Any] | None:
    text = (raw_text or "").strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            return payload
    except json.JSONDecodeError:
        pass

    # Models sometimes wrap the object in prose or code fences.
    for start_idx in [idx for idx, char in enumerate(text) if char == "{"]:
        depth = 0
        for end_idx in range(start_idx, len(text)):
            char = text[end_idx]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            if depth == 0:
                candidate = text[start_idx : end_idx + 1]
                try:
                    payload = json.loads(candidate)
                    if isinstance(payload, dict):
                        return payload
                except json.JSONDecodeError:
                    break
    return None


def coerce_completion_text(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else ""


def _string_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item).strip() for item in raw if isinstance(item, (str, int, float)) and str(item).strip()]


_TRUE_STRINGS = {"true", "yes", "1"}


def _flag(value: Any) -> bool:
    # JSON mode still lets models emit "false" as a string.
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def normalize_oracle_payload(payload: dict[str, Any]) -> OracleReply:
    content = payload.get("content")
    message_type = str(payload.get("message_type") or "text").strip().lower()
    needs_clarification = payload.get("needs_clarification")
    prediction_data = payload.get("prediction_data")
    return OracleReply(
        content=content.strip() if isinstance(content, str) and content.strip() else EMPTY_CONTENT,
        message_type=message_type if message_type in MESSAGE_TYPES else "text",
        extracted_symptoms=_string_list(payload.get("extracted_symptoms")),
        conversation_stage=str(payload.get("conversation_stage") or ConversationStage.ONGOING.value),
        needs_clarification=_flag(needs_clarification) if needs_clarification is not None else None,
        should_predict=_flag(payload.get("should_predict")),
        follow_up_questions=_string_list(payload.get("follow_up_questions"))[:1],
        prediction_data=prediction_data if isinstance(prediction_data, dict) and prediction_data else None,
    )


class SymptomOracle:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 25.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _chat_completion(self, messages: list[dict[str, str]]) -> str:
        if not self.api_key:
            raise OracleError("symptom oracle API key is not configured")
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.3,
            "max_tokens": 1000,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
            transport=self._transport,
        ) as client:
            response = client.post(f"{self.base_url}/chat/completions", headers=headers, json=payload)
        if response.status_code >= 400:
            raise OracleError(provider_error_message(response))
        body = response.json()
        if not isinstance(body, dict):
            raise OracleError("symptom oracle returned an unexpected payload")
        return coerce_completion_text(body)

    def respond(
        self,
        *,
        message: str,
        history: list[dict[str, Any]],
        context: ConversationContext,
        user_profile: UserProfile | None = None,
        location: Location | None = None,
    ) -> OracleReply:
        messages = [
            {"role": "system", "content": build_system_prompt(history, context)},
            {
                "role": "user",
                "content": build_user_prompt(
                    message=message,
                    history=history,
                    context=context,
                    user_profile=user_profile,
                    location=location.state_code if location else None,
                ),
            },
        ]
        try:
            raw_text = self._chat_completion(messages)
            payload = extract_json_object(raw_text)
            if payload is None:
                raise OracleError("symptom oracle returned no JSON object")
        except (httpx.HTTPError, OracleError, ValueError) as exc:
            logger.warning("symptom oracle unavailable: %s", exc)
            return fallback_reply()

        reply = normalize_oracle_payload(payload)
        logger.info("symptom oracle replied (%s): %s", reply.message_type, reply.content[:100])
        return reply
