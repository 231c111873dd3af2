from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/imgcache/"
IMAGE_SUFFIX = ".jpg"
SIDECAR_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"


class ImageKind(str, Enum):
    COVER = "cover"
    HERO = "hero"


class ImageOrigin(str, Enum):
    """Provenance tag reported with every resolved image."""

    UNSPLASH = "unsplash"
    SEED = "seed"
    PLACEHOLDER = "picsum"
    DISK = "disk"
    SYNTHETIC = "synthetic"


def local_url(key: str) -> str:
    return f"{LOCAL_URL_PREFIX}{key}{IMAGE_SUFFIX}"


@dataclass
class CachedImage:
    """A resolved image reference handed to clients."""

    key: str
    url: str
    source: str
    saved_at: float
    meta: dict[str, Any] | None = field(default=None)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"url": self.url, "source": self.source, "key": self.key}
        if self.meta:
            payload["meta"] = self.meta
        return payload


class DiskImageCache:
    """Content-addressed image store: ``<key>.jpg`` plus a JSON sidecar.

    Freshness is judged from the image file's mtime. Writes land in a temp
    file in the same directory and are moved into place with ``os.replace``
    so a crash never leaves a truncated image under its final name.
    """

    def __init__(self, directory: Path, *, clock: Callable[[], float] | None = None) -> None:
        self._directory = Path(directory)
        self._clock = clock or time.time

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure_directory(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    def image_path(self, key: str) -> Path:
        return self._directory / f"{key}{IMAGE_SUFFIX}"

    def sidecar_path(self, key: str) -> Path:
        return self._directory / f"{key}{SIDECAR_SUFFIX}"

    def get(self, key: str, ttl_seconds: float) -> CachedImage | None:
        try:
            mtime = self.image_path(key).stat().st_mtime
        except OSError:
            return None
        if self._clock() - mtime >= ttl_seconds:
            return None
        return CachedImage(
            key=key,
            url=local_url(key),
            source=ImageOrigin.DISK.value,
            saved_at=mtime,
            meta=self.read_sidecar(key),
        )

    def read_sidecar(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self.sidecar_path(key).read_text(encoding="utf-8")
            data = json.loads(raw)
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        meta = data.get("meta")
        return meta if isinstance(meta, dict) else None

    def put(
        self,
        key: str,
        content: bytes,
        *,
        query: str,
        source: str,
        meta: dict[str, Any] | None = None,
    ) -> CachedImage:
        self.ensure_directory()
        self._atomic_write(self.image_path(key), content)
        saved_at = self._clock()
        sidecar = {
            "key": key,
            "query": query,
            "source": source,
            "createdAt": _isoformat(saved_at),
        }
        if meta:
            sidecar["meta"] = meta
        self._atomic_write(
            self.sidecar_path(key),
            json.dumps(sidecar, ensure_ascii=False, indent=2).encode("utf-8"),
        )
        return CachedImage(key=key, url=local_url(key), source=source, saved_at=saved_at, meta=meta)

    def _atomic_write(self, target: Path, content: bytes) -> None:
        fd, temp_name = tempfile.mkstemp(
            dir=self._directory,
            prefix=f".{target.name}.",
            suffix=TEMP_SUFFIX,
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def sweep(self, max_age_seconds: float) -> int:
        """Delete stale images, sidecars and abandoned temp files."""

        if not self._directory.exists():
            return 0
        cutoff = self._clock() - max_age_seconds
        removed = 0
        for path in self._directory.iterdir():
            if not path.is_file():
                continue
            try:
                stale = path.name.endswith(TEMP_SUFFIX) or path.stat().st_mtime < cutoff
                if stale and path.suffix in {IMAGE_SUFFIX, SIDECAR_SUFFIX, TEMP_SUFFIX}:
                    path.unlink()
                    removed += 1
            except OSError as exc:
                logger.warning("Failed to sweep cached file %s: %s", path, exc)
        return removed

    def clear(self) -> int:
        return self.sweep(-1)


class MemoryImageCache:
    """Bounded in-process cache with per-entry expiry and FIFO eviction."""

    def __init__(self, max_entries: int = 20, *, clock: Callable[[], float] | None = None) -> None:
        self._max_entries = max(1, max_entries)
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, tuple[float, CachedImage]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> CachedImage | None:
        item = self._entries.get(key)
        if item is None:
            return None
        expires_at, image = item
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return image

    def put(self, key: str, image: CachedImage, ttl_seconds: float) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + ttl_seconds, image)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()


__all__ = [
    "LOCAL_URL_PREFIX",
    "CachedImage",
    "DiskImageCache",
    "ImageKind",
    "ImageOrigin",
    "MemoryImageCache",
    "local_url",
]
