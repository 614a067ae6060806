from .ledger import LedgerClient, LedgerReceipt, build_fingerprint, explorer_url, ledger_hook
from .llm_oracle import SymptomOracle, extract_json_object, fallback_reply
from .prediction import PredictionClient

__all__ = [
    "LedgerClient",
    "LedgerReceipt",
    "PredictionClient",
    "SymptomOracle",
    "build_fingerprint",
    "explorer_url",
    "extract_json_object",
    "fallback_reply",
    "ledger_hook",
]
