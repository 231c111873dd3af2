from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

BLOCKED_TERMS = (
    "feet",
    "foot",
    "barefoot",
    "hand",
    "hands",
    "nude",
    "naked",
    "sexy",
    "skin",
    "portrait",
    "people",
    "person",
    "model",
    "body",
    "leg",
    "legs",
    "toe",
    "fingers",
)

PREFERRED_TOPICS = frozenset(
    {"nature", "wallpapers", "travel", "architecture-interior", "textures-patterns"}
)

MAX_POPULARITY_SCORE = 10.0
PREFERRED_TOPIC_BONUS = 2.0
SPONSORED_PENALTY = 5.0
RESOLUTION_WEIGHT = 5.0

Candidate = Mapping[str, Any]


def _text_fields(candidate: Candidate) -> Iterable[str]:
    for field in ("description", "alt_description"):
        value = candidate.get(field)
        if value:
            yield str(value)
    for tag in candidate.get("tags") or ():
        title = tag.get("title") if isinstance(tag, Mapping) else tag
        if title:
            yield str(title)
    topics = candidate.get("topic_submissions") or {}
    if isinstance(topics, Mapping):
        yield from (str(name) for name in topics)


def is_blocked(candidate: Candidate, terms: Sequence[str] = BLOCKED_TERMS) -> bool:
    """Fail closed: any blocklisted term anywhere in the metadata blocks."""

    haystack = " ".join(_text_fields(candidate)).lower()
    return any(term in haystack for term in terms)


def _topic_names(candidate: Candidate) -> set[str]:
    names: set[str] = set()
    for tag in candidate.get("tags") or ():
        title = tag.get("title") if isinstance(tag, Mapping) else tag
        if title:
            names.add(str(title).lower())
    topics = candidate.get("topic_submissions") or {}
    if isinstance(topics, Mapping):
        names.update(str(name).lower() for name in topics)
    return names


def _is_sponsored(candidate: Candidate) -> bool:
    return bool(
        candidate.get("sponsored")
        or candidate.get("sponsored_by")
        or candidate.get("sponsored_impressions_id")
    )


def _ratio(actual: Any, target: int) -> float:
    try:
        value = float(actual)
    except (TypeError, ValueError):
        return 0.0
    if value <= 0 or target <= 0:
        return 0.0
    return min(value, target) / max(value, target)


def score(candidate: Candidate, width: int, height: int) -> float:
    likes = candidate.get("likes") or 0
    try:
        popularity = min(float(likes) / 10.0, MAX_POPULARITY_SCORE)
    except (TypeError, ValueError):
        popularity = 0.0

    topic_bonus = PREFERRED_TOPIC_BONUS * len(_topic_names(candidate) & PREFERRED_TOPICS)
    penalty = SPONSORED_PENALTY if _is_sponsored(candidate) else 0.0
    similarity = (
        _ratio(candidate.get("width"), width) + _ratio(candidate.get("height"), height)
    ) / 2
    return popularity + topic_bonus - penalty + RESOLUTION_WEIGHT * similarity


def pick_best(candidates: Iterable[Candidate], width: int, height: int) -> Candidate | None:
    """Highest scoring safe candidate; earlier results win ties."""

    best: Candidate | None = None
    best_score = float("-inf")
    for candidate in candidates:
        if is_blocked(candidate):
            continue
        value = score(candidate, width, height)
        if value > best_score:
            best, best_score = candidate, value
    return best


__all__ = [
    "BLOCKED_TERMS",
    "PREFERRED_TOPICS",
    "Candidate",
    "is_blocked",
    "pick_best",
    "score",
]
