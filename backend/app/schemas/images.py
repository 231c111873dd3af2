from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ImageResponse(BaseModel):
    url: str
    source: str
    key: str
    meta: dict[str, Any] | None = None


class CacheClearResponse(BaseModel):
    memory_entries: int
    files_removed: int


__all__ = ["CacheClearResponse", "ImageResponse"]
