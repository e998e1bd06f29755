"""Small numeric and set helpers shared by the graph builder and assembler."""

from __future__ import annotations

import math
from typing import Iterable, List, Literal, Sequence


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Trim, lower-case and de-duplicate, keeping first-seen order."""
    seen: List[str] = []
    for tag in tags or []:
        token = str(tag).strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


def intersect_tags(left: Iterable[str], right: Iterable[str]) -> List[str]:
    """Normalized tags of ``left`` that also appear in ``right``, in left order."""
    right_set = set(normalize_tags(right))
    return [tag for tag in normalize_tags(left) if tag in right_set]


def jaccard_similarity(left: Iterable[str], right: Iterable[str]) -> float:
    left_set = set(normalize_tags(left))
    right_set = set(normalize_tags(right))
    if not left_set and not right_set:
        return 0.0
    union = len(left_set | right_set)
    return len(left_set & right_set) / union if union else 0.0


def percentile(values: Sequence[float], fraction: float) -> float:
    """Linear-interpolated percentile; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]
    rank = fraction * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return ordered[lower]
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (rank - lower)


def smoothed_idf(document_frequency: int, corpus_size: int) -> float:
    return math.log((corpus_size + 1) / (document_frequency + 1)) + 1


def score_to_confidence(score: float) -> float:
    """Logistic squash centred on 2.4, rounded to 4 decimals."""
    confidence = 1 / (1 + math.exp(-0.75 * (score - 2.4)))
    return max(0.0, min(1.0, round(confidence, 4)))


def confidence_level(confidence: float) -> Literal["high", "medium", "low"]:
    if confidence >= 0.75:
        return "high"
    if confidence >= 0.5:
        return "medium"
    return "low"


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
