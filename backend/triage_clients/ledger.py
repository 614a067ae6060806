from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from memory import ConversationStore, canonical_payload_hash, sha256_text
from memory.time_utils import to_iso, utc_now
from triage_core.models import PredictionEvent, PredictionResult

from .llm_oracle import provider_error_message

logger = logging.getLogger(__name__)

LEDGER_APP_NAME = "Taimako"
LEDGER_PAYLOAD_VERSION = "1.0.0"


class LedgerError(RuntimeError):
    pass


@dataclass(frozen=True)
class LedgerReceipt:
    transaction_id: str
    explorer_url: str
    payload: dict[str, Any]


def explorer_url(transaction_id: str, network: str) -> str:
    prefix = "" if network == "mainnet" else f"{network}."
    return f"https://{prefix}hashscan.io/transaction/{transaction_id}"


def build_fingerprint(
    *,
    prediction_id: str,
    user_id: str,
    prediction: PredictionResult,
    timestamp: str | None = None,
) -> dict[str, Any]:
    """Ledger payload for one prediction. Carries no user-identifying data."""
    return {
        "prediction_id": prediction_id,
        "user_id_hash": sha256_text(user_id),
        "illness": prediction.illness,
        "confidence": prediction.confidence,
        "urgency": prediction.urgency,
        "severity": prediction.severity,
        "timestamp": timestamp or to_iso(utc_now()),
        "data_hash": canonical_payload_hash(prediction.as_payload()),
        "app": LEDGER_APP_NAME,
        "version": LEDGER_PAYLOAD_VERSION,
    }


class LedgerClient:
    """Submits prediction fingerprints to a consensus topic through an HTTP relay."""

    def __init__(
        self,
        *,
        relay_url: str,
        topic_id: str,
        api_key: str = "",
        network: str = "testnet",
        timeout_seconds: float = 15.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.relay_url = relay_url.rstrip("/")
        self.topic_id = topic_id
        self.api_key = api_key
        self.network = network
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return bool(self.relay_url and self.topic_id)

    def submit(self, payload: dict[str, Any]) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "topic_id": self.topic_id,
            "network": self.network,
            "message": json.dumps(payload, sort_keys=True, separators=(",", ":")),
        }
        with httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
            transport=self._transport,
        ) as client:
            response = client.post(f"{self.relay_url}/topics/{self.topic_id}/messages", headers=headers, json=body)
        if response.status_code >= 400:
            raise LedgerError(provider_error_message(response))
        data = response.json()
        transaction_id = str(data.get("transaction_id") or "").strip() if isinstance(data, dict) else ""
        if not transaction_id:
            raise LedgerError("ledger relay returned no transaction id")
        return transaction_id

    def log_prediction(
        self,
        *,
        prediction_id: str,
        user_id: str,
        prediction: PredictionResult,
    ) -> LedgerReceipt | None:
        if not self.enabled:
            return None
        payload = build_fingerprint(
            prediction_id=prediction_id,
            user_id=user_id,
            prediction=prediction,
            timestamp=self._clock() if self._clock else None,
        )
        try:
            transaction_id = self.submit(payload)
        except (httpx.HTTPError, LedgerError, ValueError) as exc:
            logger.warning("ledger submission failed for %s: %s", prediction_id, exc)
            return None
        logger.info("ledger transaction %s for prediction %s", transaction_id, prediction_id)
        return LedgerReceipt(
            transaction_id=transaction_id,
            explorer_url=explorer_url(transaction_id, self.network),
            payload=payload,
        )


def ledger_hook(ledger: LedgerClient, store: ConversationStore) -> Callable[[PredictionEvent], None]:
    def log_prediction_to_ledger(event: PredictionEvent) -> None:
        receipt = ledger.log_prediction(
            prediction_id=event.message_id,
            user_id=event.user_id,
            prediction=event.prediction,
        )
        if receipt is None:
            return
        store.record_ledger_log(
            user_id=event.user_id,
            conversation_id=event.conversation_id,
            message_id=event.message_id,
            transaction_id=receipt.transaction_id,
            payload=receipt.payload,
        )

    return log_prediction_to_ledger
