from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fakes import FakeOracle, FakePredictor  # noqa: E402
from memory import ConversationStore, SQLiteMemoryDB  # noqa: E402
from triage_core.models import PredictionResult  # noqa: E402


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "taimako-test.sqlite"
    monkeypatch.setenv("TAIMAKO_DB_PATH", str(db_path))
    # Keep CI offline; oracle tests swap in fakes or mock transports.
    monkeypatch.setenv("GROQ_API_KEY", "")
    monkeypatch.setenv("PREDICTION_ENDPOINT_URL", "")
    monkeypatch.setenv("HEDERA_RELAY_URL", "")
    monkeypatch.setenv("HEDERA_TOPIC_ID", "")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def store(tmp_path) -> ConversationStore:
    return ConversationStore(SQLiteMemoryDB(str(tmp_path / "store-test.sqlite")))


@pytest.fixture
def malaria_prediction() -> PredictionResult:
    return PredictionResult.from_payload(
        {
            "illness": "Malaria",
            "confidence": 0.85,
            "urgency": "moderate",
            "severity": "moderate",
            "advice": "Rest and hydrate.",
        }
    )


@pytest.fixture
def use_fakes(backend_module, monkeypatch):
    def _install(oracle: FakeOracle, predictor: FakePredictor | None = None) -> tuple[FakeOracle, FakePredictor]:
        predictor = predictor or FakePredictor()
        monkeypatch.setattr(backend_module.container.pipeline, "oracle", oracle)
        monkeypatch.setattr(backend_module.container.pipeline, "predictor", predictor)
        return oracle, predictor

    return _install
