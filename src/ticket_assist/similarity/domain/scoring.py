"""
Similarity Scoring
==================

Pure functions that turn tickets into embedding text and score candidates.

- ``encode_ticket``: weighted text blob used for the query embedding
- ``calculate_field_similarity``: per-field lexical / categorical agreement
- ``fuse_scores``: single confidence value from semantic and field scores

None of these perform I/O or raise on missing data.
"""

import math
from typing import Any, Dict, Mapping, Optional, Union

from ticket_assist.config import FieldWeights, TEXT_FIELDS, CATEGORICAL_FIELDS

SEMANTIC_WEIGHT = 0.70
FIELD_WEIGHT = 0.30
DEFAULT_MULTIPLIER = 10

LABELLED_FIELDS = frozenset(CATEGORICAL_FIELDS)

Weights = Union[FieldWeights, Mapping[str, float]]


def _value(ticket: Any, name: str) -> Any:
    if isinstance(ticket, Mapping):
        return ticket.get(name)
    return getattr(ticket, name, None)


def repeat_count(weight: float, multiplier: int = DEFAULT_MULTIPLIER) -> int:
    """Number of times a field is repeated: ``ceil(weight * multiplier)``."""
    # round first so 0.7 * 10 == 7.000000000000001 stays 7
    return max(0, math.ceil(round(weight * multiplier, 9)))


def encode_ticket(ticket: Any, field_weights: Weights, multiplier: int = DEFAULT_MULTIPLIER) -> str:
    """
    Build the weighted text representation of a ticket.

    Each weighted field with a value is repeated ``repeat_count`` times, in
    the iteration order of ``field_weights``. Categorical fields are written
    as ``"Category: Billing"`` so they stay distinguishable from free text.
    Fields missing from the ticket are skipped.
    """
    parts = []
    for name, weight in field_weights.items():
        value = _value(ticket, name)
        if not value:
            continue
        text = f"{name.capitalize()}: {value}" if name in LABELLED_FIELDS else str(value)
        parts.extend([text] * repeat_count(weight, multiplier))
    return " ".join(parts)


def tokenize(text: Optional[str]) -> set:
    return set(text.lower().split()) if text else set()


def jaccard_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """
    Jaccard similarity of lowercase whitespace tokens.

    Returns 0.0 when either side is empty.
    """
    tokens1, tokens2 = tokenize(text1), tokenize(text2)
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def exact_match(value1: Any, value2: Any) -> float:
    """1.0 for identical (case-sensitive) values, else 0.0. Two missing values do not match."""
    return 1.0 if value1 is not None and value1 == value2 else 0.0


def calculate_field_similarity(query: Any, candidate: Any) -> Dict[str, float]:
    """Per-field similarity between a query ticket and a stored candidate."""
    similarities = {}
    for name in TEXT_FIELDS:
        similarities[name] = jaccard_similarity(_value(query, name), _value(candidate, name))
    for name in CATEGORICAL_FIELDS:
        similarities[name] = exact_match(_value(query, name), _value(candidate, name))
    return similarities


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp into ``[low, high]``; NaN is treated as ``low``."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return low
    if math.isnan(value):
        return low
    return min(max(value, low), high)


def fuse_scores(
    field_similarities: Mapping[str, float],
    semantic_score: float,
    field_weights: Weights
) -> float:
    """
    Combine the semantic score with the weighted field score.

    ``confidence = clamp(clamp(semantic) * 0.7 + field_score * 0.3)`` where
    ``field_score`` sums ``similarity * weight`` over the configured fields.
    Missing similarities contribute 0. The result is always in [0, 1].
    """
    semantic = clamp(semantic_score)

    field_score = 0.0
    for name, weight in field_weights.items():
        similarity = field_similarities.get(name) or 0.0
        if isinstance(similarity, float) and math.isnan(similarity):
            continue
        field_score += similarity * weight

    return clamp(semantic * SEMANTIC_WEIGHT + field_score * FIELD_WEIGHT)
