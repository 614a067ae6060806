from .conversation_store import ConversationStore
from .database import ConversationNotFoundError, PersistenceError, SQLiteMemoryDB
from .service import MemoryService, canonical_payload_hash, sha256_text

__all__ = [
    "SQLiteMemoryDB",
    "ConversationStore",
    "ConversationNotFoundError",
    "MemoryService",
    "PersistenceError",
    "canonical_payload_hash",
    "sha256_text",
]
