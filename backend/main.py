from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import Settings, bootstrap_local_env
from memory import ConversationNotFoundError, MemoryService, SQLiteMemoryDB
from triage_clients import LedgerClient, PredictionClient, SymptomOracle, ledger_hook
from triage_core import (
    ChatTurn,
    ConversationSessionManager,
    HookRunner,
    Location,
    TriagePipeline,
    TurnValidationError,
    UserProfile,
)

bootstrap_local_env()
settings = Settings.from_env()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


class LocationPayload(BaseModel):
    state_code: str | None = None
    lga_code: str | None = None


class UserProfilePayload(BaseModel):
    age_group: str | None = None
    gender: str | None = None
    occupation: str | None = None
    medical_history: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)


class ChatRequest(BaseModel):
    conversation_id: str | None = None
    user_id: str = ""
    message: str = ""
    location: LocationPayload | None = None
    user_profile: UserProfilePayload | None = None

    def to_turn(self) -> ChatTurn:
        return ChatTurn(
            user_id=self.user_id.strip(),
            message=self.message,
            conversation_id=(self.conversation_id or "").strip() or None,
            location=Location(**self.location.model_dump()) if self.location else None,
            user_profile=UserProfile(**self.user_profile.model_dump()) if self.user_profile else None,
        )


class TriageApp:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.db = SQLiteMemoryDB(settings.db_path)
        self.memory = MemoryService(self.db)
        self.oracle = SymptomOracle(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
        self.predictor = PredictionClient(
            endpoint_url=settings.prediction_url,
            api_key=settings.prediction_api_key,
            timeout_seconds=settings.prediction_timeout_seconds,
        )
        self.ledger = LedgerClient(
            relay_url=settings.ledger_relay_url,
            topic_id=settings.ledger_topic_id,
            api_key=settings.ledger_api_key,
            network=settings.ledger_network,
            timeout_seconds=settings.ledger_timeout_seconds,
        )
        self.hooks = HookRunner()
        if self.ledger.enabled:
            self.hooks.add_after_prediction(ledger_hook(self.ledger, self.memory.conversations))
        else:
            logger.info("ledger relay not configured; prediction fingerprints will not be published")
        self.sessions = ConversationSessionManager(self.memory.conversations)
        self.pipeline = TriagePipeline(
            store=self.memory.conversations,
            sessions=self.sessions,
            oracle=self.oracle,
            predictor=self.predictor,
        )


container = TriageApp(settings)
app = FastAPI(title="Taimako Triage Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict[str, Any]:
    return {"service": "taimako-triage", "status": "ok"}


@app.post("/chat")
def chat(payload: ChatRequest):
    turn = payload.to_turn()
    try:
        turn.validate()
    except TurnValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        outcome = container.pipeline.handle_turn(turn)
    except Exception as exc:
        logger.error("chat turn failed for user %s", turn.user_id, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc) or "Internal server error", "details": repr(exc)},
        )

    envelope = outcome.as_envelope()
    if outcome.prediction_event is not None:
        container.hooks.dispatch_after_prediction(outcome.prediction_event)
    return envelope


@app.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: str):
    try:
        return container.memory.conversation_snapshot(conversation_id)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
