from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

MOODS = ("happy", "calm", "neutral", "sad", "stressed")

MOOD_QUERIES: dict[str, tuple[str, ...]] = {
    "happy": (
        "sunrise golden hour landscape",
        "warm light nature",
        "bokeh city lights",
    ),
    "calm": (
        "misty lake minimal",
        "calm sea long exposure",
        "blue tone mountains",
    ),
    "neutral": (
        "soft gradient abstract",
        "pastel texture background",
        "neutral minimalist landscape",
    ),
    "sad": (
        "rain window city night",
        "overcast street minimal",
        "foggy forest dark",
    ),
    "stressed": (
        "storm clouds ocean long exposure",
        "moody mountains minimal",
        "dramatic sky landscape",
    ),
}

SAFE_WEATHER_CONDITIONS = frozenset({"rain", "snow", "sunny", "cloudy", "foggy", "storm"})

GENERIC_QUERIES = (
    "landscape photography",
    "minimal architecture",
    "abstract nature",
)

DEFAULT_QUERY = "landscape"

_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"[a-z]+")


def normalize_query(value: str | None) -> str:
    """Lower-case, trim and collapse internal whitespace."""

    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value.strip().lower())


def cache_key(query: str | None, width: int, height: int) -> str:
    """Content address of an image request: SHA-1 of ``query|w|h``."""

    payload = f"{normalize_query(query)}|{int(width)}|{int(height)}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def context_query(
    query: str | None = None,
    city: str | None = None,
    mood: str | None = None,
    weather: str | None = None,
) -> str:
    explicit = normalize_query(query)
    if explicit:
        return explicit
    parts = [normalize_query(part) for part in (city, mood, weather)]
    joined = " ".join(part for part in parts if part)
    return joined or DEFAULT_QUERY


def extract_mood(query: str | None) -> str | None:
    """Return the first known mood word mentioned in a free-text query."""

    for word in _WORD_RE.findall(normalize_query(query)):
        if word in MOOD_QUERIES:
            return word
    return None


def _dedupe(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        normalized = normalize_query(value)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def build_cover_queries(
    query: str | None = None,
    city: str | None = None,
    mood: str | None = None,
    weather: str | None = None,
) -> list[str]:
    """Ordered, de-duplicated list of provider search phrases for a context."""

    explicit = normalize_query(query)
    city_name = normalize_query(city)
    mood_name = normalize_query(mood) or extract_mood(explicit)
    if mood_name not in MOOD_QUERIES:
        mood_name = None
    condition = normalize_query(weather)

    candidates: list[str] = []
    if explicit:
        candidates.append(explicit)

    if city_name:
        candidates.extend(
            [
                f"{city_name} skyline",
                f"{city_name} cityscape",
                f"{city_name} landmark",
                f"{city_name} night skyline",
            ]
        )
        if mood_name:
            candidates.append(f"{city_name} {mood_name} landscape")

    candidates.extend(MOOD_QUERIES[mood_name or "neutral"])

    if condition in SAFE_WEATHER_CONDITIONS:
        candidates.append(f"{condition} landscape")
        if city_name:
            candidates.append(f"{city_name} {condition}")

    candidates.extend(GENERIC_QUERIES)
    return _dedupe(candidates)


def seed_mood(mood: str | None) -> str:
    """Mood bucket used for seed selection; unknown moods map to neutral."""

    normalized = normalize_query(mood)
    return normalized if normalized in MOOD_QUERIES else "neutral"


def pick_seed_index(city: str | None, mood: str | None, size: int) -> int:
    """Deterministic index into a seed list for a (city, mood) context."""

    if size <= 0:
        raise ValueError("seed list is empty")
    payload = f"{normalize_query(city)}|{seed_mood(mood)}"
    digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % size


__all__ = [
    "DEFAULT_QUERY",
    "GENERIC_QUERIES",
    "MOODS",
    "MOOD_QUERIES",
    "SAFE_WEATHER_CONDITIONS",
    "build_cover_queries",
    "cache_key",
    "context_query",
    "extract_mood",
    "normalize_query",
    "pick_seed_index",
    "seed_mood",
]
