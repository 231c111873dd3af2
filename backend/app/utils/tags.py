from __future__ import annotations

import json
from collections.abc import Iterable

MAX_TAG_LENGTH = 40


def normalize_tags(values: Iterable[object] | None) -> list[str]:
    """Trim, lower-case and de-duplicate tags keeping first-seen order."""

    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value is None:
            continue
        tag = " ".join(str(value).split()).lower()[:MAX_TAG_LENGTH]
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def decode_tags(raw: object) -> list[str]:
    """Accept tags stored as JSON text or already materialised as a list."""

    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return normalize_tags(raw)
        if not isinstance(parsed, list):
            return []
        return normalize_tags(parsed)
    if isinstance(raw, Iterable):
        return normalize_tags(raw)
    return []


def encode_tags(values: Iterable[object] | None) -> str:
    return json.dumps(normalize_tags(values), ensure_ascii=False)


__all__ = ["decode_tags", "encode_tags", "normalize_tags"]
