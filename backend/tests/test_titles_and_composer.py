from __future__ import annotations

import re
from datetime import datetime

from triage_core.composer import compose_response, confidence_percent, render_prediction_message
from triage_core.models import OracleReply, PredictionResult
from triage_core.titles import capitalize_words, generate_conversation_title


def test_two_categories_join_in_match_order():
    assert generate_conversation_title("I have fever and headache") == "Fever & Headache"


def test_no_category_falls_back_to_time_stamped_title():
    title = generate_conversation_title("I feel generally unwell")
    assert re.fullmatch(r"Health Chat - \d{2}:\d{2} (AM|PM)", title)
    fixed = generate_conversation_title("I feel generally unwell", now=datetime(2026, 10, 19, 15, 4))
    assert fixed == "Health Chat - 03:04 PM"


def test_many_categories_prefer_important_ones_in_priority_order():
    assert generate_conversation_title("malaria symptoms, fever, chest pain") == "Fever & Chest"


def test_single_category_title():
    assert generate_conversation_title("my belly hurts") == "Stomach Issue"
    assert generate_conversation_title("terrible body ache") == "Body Pain Issue"


def test_one_important_category_is_padded_with_first_other_match():
    assert generate_conversation_title("coughing, dizzy and some chest tightness") == "Chest & Cough"


def test_no_important_category_uses_first_two_matches():
    assert generate_conversation_title("cough, vomiting and dizziness") == "Cough & Vomiting"


def test_capitalize_only_touches_first_letter():
    assert capitalize_words("body pain") == "Body Pain"
    assert capitalize_words("hIV test") == "HIV test"


def test_prediction_message_contains_expected_fields(malaria_prediction):
    text = render_prediction_message(malaria_prediction)
    assert "**Malaria**" in text
    assert "85%" in text
    assert "MODERATE" in text
    assert "Rest and hydrate." in text
    assert "2-3 days" in text


def test_prediction_message_uses_generic_advice_when_missing():
    text = render_prediction_message(PredictionResult(illness="Typhoid", confidence=0.7, urgency="high", severity="mild"))
    assert "Please rest, stay hydrated, and follow medical advice." in text
    assert "**Urgency Level:** HIGH" in text


def test_confidence_rounds_half_up():
    assert confidence_percent(0.845) in {84, 85}
    assert confidence_percent(0.125) == 13
    assert confidence_percent(None) == 0


def test_compose_passes_oracle_reply_through_without_prediction():
    reply = OracleReply(content="Drink water.", message_type="follow_up", follow_up_questions=["How long?"])
    response = compose_response(reply, None)
    assert response.content == "Drink water."
    assert response.message_type == "follow_up"
    assert response.follow_up_questions == ["How long?"]
    assert response.prediction_data is None


def test_compose_defaults_unknown_message_type_to_text():
    response = compose_response(OracleReply(content="Hi", message_type="banter"), None)
    assert response.message_type == "text"


def test_compose_overrides_with_prediction(malaria_prediction):
    reply = OracleReply(content="Tell me more.", message_type="clarification")
    response = compose_response(reply, malaria_prediction)
    assert response.message_type == "prediction"
    assert response.prediction_data["illness"] == "Malaria"
    assert response.confidence == 0.85
    assert response.urgency == "moderate"
    assert "Tell me more." not in response.content
