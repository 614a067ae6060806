from __future__ import annotations

from datetime import datetime

TITLE_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("fever", ("fever", "hot body", "temperature")),
    ("headache", ("headache", "head pain", "migraine")),
    ("cough", ("cough", "coughing")),
    ("cold", ("cold", "flu", "runny nose")),
    ("malaria", ("malaria",)),
    ("typhoid", ("typhoid",)),
    ("stomach", ("stomach", "belly", "abdominal")),
    ("chest", ("chest pain", "chest")),
    ("body pain", ("body pain", "body ache", "muscle pain")),
    ("diarrhea", ("diarrhea", "stooling", "running stomach")),
    ("vomiting", ("vomit", "vomiting", "throwing up")),
    ("dizziness", ("dizzy", "dizziness")),
    ("weakness", ("weak", "weakness", "tired", "fatigue")),
)

IMPORTANT_CATEGORIES = ("fever", "chest", "headache", "malaria", "typhoid")


def capitalize_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def matched_categories(message: str) -> list[str]:
    lower = (message or "").lower()
    return [name for name, keywords in TITLE_CATEGORIES if any(keyword in lower for keyword in keywords)]


def generate_conversation_title(message: str, now: datetime | None = None) -> str:
    found = matched_categories(message)
    if not found:
        stamp = (now or datetime.now()).strftime("%I:%M %p")
        return f"Health Chat - {stamp}"
    if len(found) == 1:
        return f"{capitalize_words(found[0])} Issue"
    if len(found) == 2:
        return f"{capitalize_words(found[0])} & {capitalize_words(found[1])}"

    important = [name for name in IMPORTANT_CATEGORIES if name in found][:2]
    if len(important) == 2:
        first, second = important
    elif len(important) == 1:
        first = important[0]
        second = next((name for name in found if name != first), "other")
    else:
        first, second = found[0], found[1]
    return f"{capitalize_words(first)} & {capitalize_words(second)}"
