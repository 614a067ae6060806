from __future__ import annotations

import threading

from fakes import FakeOracle, FakePredictor
from triage_clients.llm_oracle import FALLBACK_CONTENT
from triage_core.models import ChatTurn, OracleReply


def _chat(client, message: str, **extra) -> dict:
    payload = {"user_id": "user-a", "message": message}
    payload.update(extra)
    response = client.post("/chat", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def _context_row(backend_module, conversation_id: str) -> dict | None:
    return backend_module.container.memory.conversations.get_context(conversation_id)


def test_missing_user_id_or_message_is_rejected_without_side_effects(client, backend_module):
    for payload in ({"message": "fever"}, {"user_id": "user-a"}, {"user_id": "  ", "message": "fever"}):
        response = client.post("/chat", json=payload)
        assert response.status_code == 400
        assert "required" in response.json()["detail"].lower()

    with backend_module.container.db.connection() as conn:
        count = conn.execute("SELECT COUNT(*) AS n FROM conversations").fetchone()["n"]
    assert count == 0


def test_oracle_outage_degrades_to_fallback_reply(client):
    # No GROQ_API_KEY in tests, so the real oracle client takes its failure path.
    body = _chat(client, "hello there")
    assert body["success"] is True
    assert body["response"]["message_type"] == "text"
    assert body["response"]["content"] == FALLBACK_CONTENT
    assert body["context"]["needs_clarification"] is False


def test_turn_without_escalation_saves_both_messages_and_context(client, backend_module, use_fakes):
    oracle, predictor = use_fakes(
        FakeOracle(
            OracleReply(
                content="How long have you had the headache?",
                message_type="follow_up",
                extracted_symptoms=["headache"],
                conversation_stage="symptom_collection",
                needs_clarification=True,
                follow_up_questions=["How long?"],
            )
        )
    )
    body = _chat(client, "I have a headache")

    assert predictor.calls == []
    assert body["response"]["message_type"] == "follow_up"
    assert body["response"]["content"] == "How long have you had the headache?"
    assert body["context"] == {
        "extracted_symptoms": ["headache"],
        "conversation_stage": "symptom_collection",
        "needs_clarification": True,
    }

    conversation = backend_module.container.memory.conversations.get_conversation_with_messages(
        body["conversation_id"]
    )
    assert conversation["title"] == "Headache Issue"
    assert conversation["total_messages"] == 2
    assert [m["role"] for m in conversation["messages"]] == ["user", "assistant"]
    assert conversation["messages"][1]["id"] == body["message_id"]

    context = _context_row(backend_module, body["conversation_id"])
    assert context["extracted_symptoms"] == ["headache"]
    assert context["current_concerns"] == []


def test_escalation_replaces_reply_with_prediction(client, backend_module, use_fakes, malaria_prediction):
    oracle, predictor = use_fakes(
        FakeOracle(
            OracleReply(
                content="Let me check.",
                extracted_symptoms=["chills"],
                needs_clarification=False,
            )
        ),
        FakePredictor(malaria_prediction),
    )
    body = _chat(
        client,
        "I have fever and headache",
        location={"state_code": "LA"},
        user_profile={"age_group": "adult", "gender": "female"},
    )

    assert len(predictor.calls) == 1
    call = predictor.calls[0]
    assert call["symptoms"] == ["fever", "headache", "chills"]
    assert call["user_id"] == "user-a"
    assert call["user_profile"].age_group == "adult"
    assert call["location"].state_code == "LA"

    response = body["response"]
    assert response["message_type"] == "prediction"
    assert "Malaria" in response["content"]
    assert "85%" in response["content"]
    assert response["confidence"] == 0.85
    assert response["prediction_data"]["illness"] == "Malaria"
    assert body["context"]["conversation_stage"] == "prediction"

    context = _context_row(backend_module, body["conversation_id"])
    assert context["current_concerns"] == ["Malaria"]
    assert context["conversation_stage"] == "prediction"


def test_failed_prediction_keeps_oracle_reply(client, use_fakes):
    oracle, predictor = use_fakes(
        FakeOracle(OracleReply(content="Stay hydrated.", extracted_symptoms=["fever"], should_predict=True)),
        FakePredictor(None),
    )
    body = _chat(client, "I have a fever")
    assert len(predictor.calls) == 1
    assert body["response"]["message_type"] == "text"
    assert body["response"]["content"] == "Stay hydrated."
    assert body["response"]["prediction_data"] is None


def test_no_symptoms_never_calls_prediction(client, use_fakes):
    oracle, predictor = use_fakes(
        FakeOracle(OracleReply(content="Hello! How can I help?", should_predict=True, needs_clarification=False)),
    )
    _chat(client, "hello")
    assert predictor.calls == []


def test_symptoms_accumulate_and_fourth_message_escalates(client, backend_module, use_fakes, malaria_prediction):
    oracle, predictor = use_fakes(
        FakeOracle(
            OracleReply(content="Tell me more.", extracted_symptoms=["fever"], needs_clarification=True),
        ),
        FakePredictor(malaria_prediction),
    )
    first = _chat(client, "I feel hot")
    conversation_id = first["conversation_id"]
    assert predictor.calls == []

    second = _chat(client, "it started yesterday", conversation_id=conversation_id)
    assert second["conversation_id"] == conversation_id
    # Message count is 3 on this turn (two saved before plus this one).
    assert predictor.calls == []

    third = _chat(client, "still the same", conversation_id=conversation_id)
    assert len(predictor.calls) == 1
    assert third["response"]["message_type"] == "prediction"

    history_seen = oracle.calls[2]["history"]
    assert [m["content"] for m in history_seen][:1] == ["I feel hot"]
    assert oracle.calls[2]["context"].extracted_symptoms == ["fever"]


def test_concerns_repeat_across_predictions(client, backend_module, use_fakes, malaria_prediction):
    use_fakes(
        FakeOracle(OracleReply(content="ok", extracted_symptoms=["fever"], needs_clarification=False)),
        FakePredictor(malaria_prediction),
    )
    first = _chat(client, "fever again")
    _chat(client, "fever again", conversation_id=first["conversation_id"])
    context = _context_row(backend_module, first["conversation_id"])
    assert context["current_concerns"] == ["Malaria", "Malaria"]
    assert context["extracted_symptoms"] == ["fever"]


def test_recent_empty_conversation_is_reused_by_chat(client, backend_module, use_fakes):
    use_fakes(FakeOracle(OracleReply(content="Hi", needs_clarification=True)))
    shell_id = backend_module.container.memory.conversations.create_conversation(user_id="user-a", title="New chat")
    body = _chat(client, "I have a cough")
    assert body["conversation_id"] == shell_id
    snapshot = client.get(f"/conversations/{shell_id}").json()
    assert snapshot["title"] == "Cough Issue"
    assert snapshot["total_messages"] == 2


def test_unknown_conversation_id_is_a_server_error(client, use_fakes):
    oracle, _ = use_fakes(FakeOracle(OracleReply(content="Hi")))
    response = client.post(
        "/chat",
        json={"user_id": "user-a", "message": "fever", "conversation_id": "does-not-exist"},
    )
    assert response.status_code == 500
    body = response.json()
    assert "not found" in body["error"].lower()
    assert body["details"]
    assert oracle.calls == []


def test_get_conversation_returns_404_for_unknown_id(client):
    response = client.get("/conversations/nope")
    assert response.status_code == 404


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_prediction_response_does_not_wait_for_after_prediction_hooks(
    client, backend_module, use_fakes, malaria_prediction
):
    use_fakes(
        FakeOracle(OracleReply(content="ok", extracted_symptoms=["fever"], needs_clarification=False)),
        FakePredictor(malaria_prediction),
    )
    release = threading.Event()
    finished = threading.Event()
    seen = []

    def slow_ledger(event) -> None:
        release.wait(timeout=5)
        seen.append(event)
        finished.set()

    backend_module.container.hooks.add_after_prediction(slow_ledger)

    body = _chat(client, "I have a fever")
    assert body["response"]["message_type"] == "prediction"
    assert seen == []

    release.set()
    assert finished.wait(timeout=5)
    assert seen[0].message_id == body["message_id"]
    assert seen[0].conversation_id == body["conversation_id"]
    assert seen[0].prediction.illness == "Malaria"


def test_only_prediction_turns_carry_a_prediction_event(backend_module, use_fakes, malaria_prediction):
    use_fakes(
        FakeOracle(
            OracleReply(content="Tell me more.", extracted_symptoms=["fever"], needs_clarification=True),
            OracleReply(content="ok", extracted_symptoms=["fever"], needs_clarification=False),
        ),
        FakePredictor(malaria_prediction),
    )
    pipeline = backend_module.container.pipeline

    first = pipeline.handle_turn(ChatTurn(user_id="user-a", message="I have a fever"))
    assert first.response.message_type == "text"
    assert first.prediction_event is None

    second = pipeline.handle_turn(
        ChatTurn(user_id="user-a", message="still feverish", conversation_id=first.conversation_id)
    )
    assert second.response.message_type == "prediction"
    assert second.prediction_event is not None
    assert second.prediction_event.message_id == second.message_id
