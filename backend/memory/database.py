from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class PersistenceError(Exception):
    pass


class ConversationNotFoundError(PersistenceError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class SQLiteMemoryDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS conversations (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  total_messages INTEGER NOT NULL DEFAULT 0,
                  state_code TEXT,
                  lga_code TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS messages (
                  id TEXT PRIMARY KEY,
                  conversation_id TEXT NOT NULL REFERENCES conversations(id),
                  user_id TEXT NOT NULL,
                  seq INTEGER NOT NULL,
                  role TEXT NOT NULL,
                  content TEXT NOT NULL,
                  message_type TEXT NOT NULL DEFAULT 'text',
                  prediction_json TEXT,
                  follow_up_json TEXT,
                  created_at TEXT NOT NULL,
                  UNIQUE(conversation_id, seq)
                );

                CREATE TABLE IF NOT EXISTS conversation_context (
                  conversation_id TEXT PRIMARY KEY REFERENCES conversations(id),
                  extracted_symptoms_json TEXT NOT NULL,
                  current_concerns_json TEXT NOT NULL,
                  conversation_stage TEXT NOT NULL DEFAULT 'initial',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS ledger_logs (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  conversation_id TEXT NOT NULL,
                  message_id TEXT NOT NULL,
                  transaction_id TEXT NOT NULL,
                  payload_json TEXT NOT NULL,
                  verification_status TEXT NOT NULL,
                  created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_conversations_user_empty
                  ON conversations(user_id, total_messages, created_at DESC);
                CREATE INDEX IF NOT EXISTS idx_messages_conversation_seq
                  ON messages(conversation_id, seq);
                CREATE INDEX IF NOT EXISTS idx_ledger_logs_conversation
                  ON ledger_logs(conversation_id, created_at);
                """
            )
