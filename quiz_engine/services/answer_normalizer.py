"""
Answer normalization

Clients send the selected option as a bare string/number or as an object
carrying the option id under one of several keys. Everything is reduced to
{question_id: {"selectedOptionId": "<option id>"}} before it is stored or
scored.
"""
import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

SELECTED_OPTION_KEY = "selectedOptionId"

# Checked in order before falling back to the first non-null value
LEGACY_OPTION_KEYS = (
    SELECTED_OPTION_KEY,
    "selected_option_id",
    "optionId",
    "option_id",
    "selectedOption",
    "answer",
    "value",
    "id",
)

NormalizedAnswers = Dict[str, Dict[str, str]]


def extract_option_id(raw: Any) -> Optional[str]:
    """
    Reduce one raw answer to a scalar option identifier

    Returns None when the answer carries no usable value.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, str):
        value = raw.strip()
        return value or None

    if isinstance(raw, int):
        return str(raw)

    if isinstance(raw, float):
        if raw != raw:  # NaN
            return None
        return str(int(raw)) if raw.is_integer() else str(raw)

    if isinstance(raw, Mapping):
        for key in LEGACY_OPTION_KEYS:
            if key in raw:
                option_id = extract_option_id(raw[key])
                if option_id is not None:
                    return option_id
        for value in raw.values():
            if value is not None:
                return extract_option_id(value)
        return None

    if isinstance(raw, (list, tuple)):
        for value in raw:
            if value is not None:
                return extract_option_id(value)
        return None

    return None


def normalize_answers(answers: Optional[Mapping[Any, Any]]) -> NormalizedAnswers:
    """
    Convert client answers to the canonical form

    Deterministic and side-effect free; option ids are not validated
    against the quiz.
    """
    normalized: NormalizedAnswers = {}
    if not answers:
        return normalized

    for question_id, raw in answers.items():
        option_id = extract_option_id(raw)
        if option_id is None:
            continue
        normalized[str(question_id)] = {SELECTED_OPTION_KEY: option_id}

    dropped = len(answers) - len(normalized)
    if dropped:
        logger.debug(f"Dropped {dropped} empty answer(s) during normalization")

    return normalized


def merge_answers(
    existing: Optional[Mapping[str, Any]],
    incoming: NormalizedAnswers
) -> NormalizedAnswers:
    """Incoming entries overwrite matching question ids; others are kept"""
    merged = normalize_answers(existing)
    merged.update(incoming)
    return merged
