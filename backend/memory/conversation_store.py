from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any

from .database import ConversationNotFoundError, SQLiteMemoryDB
from .time_utils import to_iso, utc_now


def _json_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _json_loads(raw: str | None, default: Any) -> Any:
    if raw is None:
        return default
    return json.loads(raw)


def _message_row(row: Any) -> dict[str, Any]:
    return {
        "id": row["id"],
        "role": row["role"],
        "content": row["content"],
        "message_type": row["message_type"],
        "prediction_data": _json_loads(row["prediction_json"], None),
        "follow_up_questions": _json_loads(row["follow_up_json"], []),
        "created_at": row["created_at"],
    }


class ConversationStore:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def create_conversation(
        self,
        *,
        user_id: str,
        title: str,
        state_code: str | None = None,
        lga_code: str | None = None,
    ) -> str:
        now = to_iso(utc_now())
        conversation_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO conversations (
                  id, user_id, title, total_messages, state_code, lga_code, created_at, updated_at
                )
                VALUES (?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (conversation_id, user_id, title, state_code, lga_code, now, now),
            )
        return conversation_id

    def find_recent_empty_conversation(self, *, user_id: str, since: datetime) -> dict[str, Any] | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id, total_messages, created_at
                FROM conversations
                WHERE user_id = ?
                  AND total_messages = 0
                  AND created_at >= ?
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (user_id, to_iso(since)),
            ).fetchone()
        if not row:
            return None
        return {"id": row["id"], "total_messages": row["total_messages"], "created_at": row["created_at"]}

    def update_title(self, conversation_id: str, title: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                (title, to_iso(utc_now()), conversation_id),
            )

    def get_conversation_with_messages(self, conversation_id: str) -> dict[str, Any]:
        with self._db.connection() as conn:
            conversation = conn.execute(
                """
                SELECT id, user_id, title, total_messages, state_code, lga_code, created_at, updated_at
                FROM conversations
                WHERE id = ?
                """,
                (conversation_id,),
            ).fetchone()
            if not conversation:
                raise ConversationNotFoundError(conversation_id)
            messages = [
                _message_row(row)
                for row in conn.execute(
                    """
                    SELECT id, role, content, message_type, prediction_json, follow_up_json, created_at
                    FROM messages
                    WHERE conversation_id = ?
                    ORDER BY seq ASC
                    """,
                    (conversation_id,),
                ).fetchall()
            ]
        payload = dict(conversation)
        payload["messages"] = messages
        return payload

    def add_message(
        self,
        *,
        conversation_id: str,
        user_id: str,
        content: str,
        role: str,
        message_type: str = "text",
        prediction_data: dict[str, Any] | None = None,
        follow_up_questions: list[str] | None = None,
    ) -> str:
        now = to_iso(utc_now())
        message_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT total_messages FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
            if not row:
                raise ConversationNotFoundError(conversation_id)
            seq = conn.execute(
                "SELECT COALESCE(MAX(seq), 0) + 1 AS next_seq FROM messages WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()["next_seq"]
            conn.execute(
                """
                INSERT INTO messages (
                  id, conversation_id, user_id, seq, role, content, message_type,
                  prediction_json, follow_up_json, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    conversation_id,
                    user_id,
                    seq,
                    role,
                    content,
                    message_type,
                    _json_dumps(prediction_data) if prediction_data is not None else None,
                    _json_dumps(follow_up_questions) if follow_up_questions is not None else None,
                    now,
                ),
            )
            conn.execute(
                """
                UPDATE conversations
                SET total_messages = total_messages + 1, updated_at = ?
                WHERE id = ?
                """,
                (now, conversation_id),
            )
        return message_id

    def get_context(self, conversation_id: str) -> dict[str, Any] | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT extracted_symptoms_json, current_concerns_json, conversation_stage, updated_at
                FROM conversation_context
                WHERE conversation_id = ?
                """,
                (conversation_id,),
            ).fetchone()
        if not row:
            return None
        return {
            "conversation_id": conversation_id,
            "extracted_symptoms": _json_loads(row["extracted_symptoms_json"], []),
            "current_concerns": _json_loads(row["current_concerns_json"], []),
            "conversation_stage": row["conversation_stage"],
            "updated_at": row["updated_at"],
        }

    def upsert_context(
        self,
        *,
        conversation_id: str,
        extracted_symptoms: list[str],
        current_concerns: list[str],
        conversation_stage: str,
    ) -> None:
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO conversation_context (
                  conversation_id, extracted_symptoms_json, current_concerns_json,
                  conversation_stage, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(conversation_id) DO UPDATE SET
                  extracted_symptoms_json = excluded.extracted_symptoms_json,
                  current_concerns_json = excluded.current_concerns_json,
                  conversation_stage = excluded.conversation_stage,
                  updated_at = excluded.updated_at
                """,
                (
                    conversation_id,
                    _json_dumps(extracted_symptoms),
                    _json_dumps(current_concerns),
                    conversation_stage,
                    now,
                    now,
                ),
            )

    def record_ledger_log(
        self,
        *,
        user_id: str,
        conversation_id: str,
        message_id: str,
        transaction_id: str,
        payload: dict[str, Any],
        verification_status: str = "confirmed",
    ) -> str:
        log_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO ledger_logs (
                  id, user_id, conversation_id, message_id, transaction_id,
                  payload_json, verification_status, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log_id,
                    user_id,
                    conversation_id,
                    message_id,
                    transaction_id,
                    _json_dumps(payload),
                    verification_status,
                    to_iso(utc_now()),
                ),
            )
        return log_id
