from __future__ import annotations

from urllib.parse import quote

# Gradient stops per mood; anything unknown renders the neutral greys.
MOOD_GRADIENTS: dict[str, tuple[str, str]] = {
    "happy": ("#f6d365", "#fda085"),
    "calm": ("#a1c4fd", "#c2e9fb"),
    "neutral": ("#cccccc", "#999999"),
    "sad": ("#89a4c7", "#4b6584"),
    "stressed": ("#5f6c7b", "#2f3640"),
}


def gradient_svg(width: int, height: int, mood: str | None = None) -> str:
    start, end = MOOD_GRADIENTS.get((mood or "").strip().lower(), MOOD_GRADIENTS["neutral"])
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
        '<defs><linearGradient id="g" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" stop-color="{start}"/>'
        f'<stop offset="100%" stop-color="{end}"/>'
        "</linearGradient></defs>"
        f'<rect width="{width}" height="{height}" fill="url(#g)"/>'
        "</svg>"
    )


def synthetic_data_uri(width: int, height: int, mood: str | None = None) -> str:
    """Inline SVG gradient usable when no network source is reachable."""

    return "data:image/svg+xml;charset=utf-8," + quote(gradient_svg(width, height, mood), safe="")


__all__ = ["MOOD_GRADIENTS", "gradient_svg", "synthetic_data_uri"]
