from __future__ import annotations

import hashlib
import json
from typing import Any

from .conversation_store import ConversationStore
from .database import SQLiteMemoryDB


def canonical_payload_hash(payload: dict[str, Any]) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def sha256_text(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class MemoryService:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self.db = db
        self.conversations = ConversationStore(db)

    def conversation_snapshot(self, conversation_id: str) -> dict[str, Any]:
        conversation = self.conversations.get_conversation_with_messages(conversation_id)
        conversation["context"] = self.conversations.get_context(conversation_id)
        return conversation
