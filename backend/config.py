from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    db_path: str
    allowed_origins: tuple[str, ...]
    log_level: str

    llm_base_url: str
    llm_api_key: str
    llm_model: str
    llm_timeout_seconds: float

    prediction_url: str
    prediction_api_key: str
    prediction_timeout_seconds: float

    ledger_relay_url: str
    ledger_api_key: str
    ledger_topic_id: str
    ledger_network: str
    ledger_timeout_seconds: float

    @classmethod
    def from_env(cls) -> "Settings":
        default_db = str(Path(__file__).resolve().parent / "taimako.sqlite")
        return cls(
            db_path=_env("TAIMAKO_DB_PATH", default_db),
            allowed_origins=tuple(
                origin.strip()
                for origin in _env("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
                if origin.strip()
            ),
            log_level=_env("TAIMAKO_LOG_LEVEL", "INFO").upper(),
            llm_base_url=_env("GROQ_BASE_URL", "https://api.groq.com/openai/v1").rstrip("/"),
            llm_api_key=_env("GROQ_API_KEY"),
            llm_model=_env("GROQ_MODEL", "llama-3.3-70b-versatile"),
            llm_timeout_seconds=float(_env("TAIMAKO_CHAT_TIMEOUT_SECONDS", "25")),
            prediction_url=_env("PREDICTION_ENDPOINT_URL"),
            prediction_api_key=_env("PREDICTION_API_KEY"),
            prediction_timeout_seconds=float(_env("PREDICTION_TIMEOUT_SECONDS", "20")),
            ledger_relay_url=_env("HEDERA_RELAY_URL").rstrip("/"),
            ledger_api_key=_env("HEDERA_RELAY_API_KEY"),
            ledger_topic_id=_env("HEDERA_TOPIC_ID"),
            ledger_network=_env("HEDERA_NETWORK", "testnet").lower(),
            ledger_timeout_seconds=float(_env("HEDERA_TIMEOUT_SECONDS", "15")),
        )
