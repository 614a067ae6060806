from __future__ import annotations

import logging
from typing import Any

import httpx

from triage_core.models import Location, PredictionResult, UserProfile

from .llm_oracle import provider_error_message

logger = logging.getLogger(__name__)


class PredictionClient:
    """Client for the remote illness-prediction function.

    Every failure mode (not configured, transport error, non-2xx, missing
    ``result``) collapses to ``None`` so the caller can keep its own reply.
    """

    def __init__(
        self,
        *,
        endpoint_url: str,
        api_key: str = "",
        timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def build_payload(
        self,
        *,
        symptoms: list[str],
        user_id: str,
        user_profile: UserProfile | None,
        location: Location | None,
    ) -> dict[str, Any]:
        profile = user_profile or UserProfile()
        return {
            "symptoms": list(symptoms),
            "user_id": user_id,
            "age_group": profile.age_group,
            "gender": profile.gender,
            "location": location.as_payload() if location else None,
        }

    def predict(
        self,
        *,
        symptoms: list[str],
        user_id: str,
        user_profile: UserProfile | None = None,
        location: Location | None = None,
    ) -> PredictionResult | None:
        if not self.endpoint_url:
            logger.warning("prediction endpoint is not configured; skipping prediction")
            return None

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = self.build_payload(
            symptoms=symptoms,
            user_id=user_id,
            user_profile=user_profile,
            location=location,
        )
        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
                transport=self._transport,
            ) as client:
                response = client.post(self.endpoint_url, headers=headers, json=payload)
            if response.status_code >= 400:
                logger.warning("prediction failed: %s", provider_error_message(response))
                return None
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("prediction call failed: %s", exc)
            return None

        result = PredictionResult.from_payload(body.get("result") if isinstance(body, dict) else None)
        if result is None:
            logger.warning("prediction response carried no usable result")
        return result
