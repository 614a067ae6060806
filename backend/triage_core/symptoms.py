from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

SYMPTOM_VOCABULARY: tuple[str, ...] = (
    # general
    "fever",
    "headache",
    "cough",
    "dry cough",
    "fatigue",
    "nausea",
    "vomiting",
    "diarrhea",
    "abdominal pain",
    "chest pain",
    "shortness of breath",
    "dizziness",
    "muscle pain",
    "joint pain",
    "sore throat",
    "runny nose",
    "sneezing",
    "congestion",
    "chills",
    "sweating",
    "weakness",
    "loss of appetite",
    "weight loss",
    "blurred vision",
    "rash",
    "swelling",
    "redness",
    "itchiness",
    "burning sensation",
    "frequent urination",
    "blood in urine",
    "pale skin",
    "jaundice",
    "body ache",
    "body pain",
    "tired",
    "exhausted",
    "sick",
    "unwell",
    "pain",
    "cold",
    "flu",
    "malaria",
    "typhoid",
    "migraine",
    "chest discomfort",
    # back and spine
    "back pain",
    "back ache",
    "upper back",
    "lower back",
    "middle back",
    "spine pain",
    "spinal pain",
    "backache",
    "back stiffness",
    "neck pain",
    "shoulder pain",
    "shoulder ache",
    # posture and lifestyle
    "poor posture",
    "sitting too long",
    "prolonged sitting",
    "bad posture",
    "desk work",
    "computer work",
    "office work",
    # laterality
    "left side",
    "right side",
    "left side pain",
    "right side pain",
    "upper left",
    "upper right",
    "lower left",
    "lower right",
    # severity
    "badly",
    "severely",
    "mildly",
    "moderately",
    "intensely",
    "sharp pain",
    "dull pain",
    "throbbing pain",
    "stabbing pain",
    "burning pain",
    "aching pain",
    "stiffness",
    "tension",
)

# Evaluated in order after the vocabulary scan.
COMPOUND_SYMPTOM_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"upper back.*ache|back.*ache.*upper", re.IGNORECASE), "upper_back_pain"),
    (re.compile(r"left side.*pain|pain.*left side", re.IGNORECASE), "left_side_pain"),
    (re.compile(r"sitting.*too long|too long.*sitting", re.IGNORECASE), "prolonged_sitting"),
    (re.compile(r"poor.*posture|bad.*posture", re.IGNORECASE), "poor_posture"),
    (re.compile(r"back.*pain|back.*ache", re.IGNORECASE), "back_pain"),
)


def extract_symptoms(text: str) -> list[str]:
    lower = (text or "").lower()
    found = [symptom for symptom in SYMPTOM_VOCABULARY if symptom in lower]
    for pattern, token in COMPOUND_SYMPTOM_RULES:
        if pattern.search(text or "") and token not in found:
            found.append(token)
    logger.debug("extracted symptoms from %r: %s", (text or "")[:50], ", ".join(found))
    return found
