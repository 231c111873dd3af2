from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .cache import LOCAL_URL_PREFIX

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "img::"
DEFAULT_CLIENT_TTL_SECONDS = 24 * 3600


class JsonFileStore:
    """A persisted string-to-string mapping backed by one JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                raw = {}
            except (OSError, ValueError) as exc:
                logger.warning("Discarding unreadable client store %s: %s", self._path, exc)
                raw = {}
            if not isinstance(raw, dict):
                raw = {}
            self._data = {str(key): str(value) for key, value in raw.items()}
        return self._data

    def _flush(self) -> None:
        data = self._load()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._load().pop(key, None) is not None:
            self._flush()

    def keys(self) -> Iterator[str]:
        return iter(list(self._load()))


@dataclass
class ClientCacheEntry:
    url: str
    source: str
    key: str
    saved_at: float
    context: dict[str, Any] = field(default_factory=dict)


def is_local_url(url: str) -> bool:
    return url.startswith(LOCAL_URL_PREFIX)


class ClientImageCache:
    """Persisted client-side cache of resolved image references.

    Entries live under ``img::<scope>::<key>``. Expired entries are dropped
    when read or by :meth:`purge_expired`; unreadable entries are deleted as
    soon as they are noticed.
    """

    def __init__(
        self,
        store: JsonFileStore,
        *,
        ttl_seconds: float = DEFAULT_CLIENT_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock or time.time

    def now(self) -> float:
        return self._clock()

    @staticmethod
    def storage_key(scope: str, key: str) -> str:
        return f"{STORAGE_PREFIX}{scope}::{key}"

    def _decode(self, storage_key: str) -> ClientCacheEntry | None:
        raw = self._store.get(storage_key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            entry = ClientCacheEntry(
                url=str(data["url"]),
                source=str(data.get("source", "")),
                key=str(data.get("key", "")),
                saved_at=float(data["savedAt"]),
                context=dict(data.get("context") or {}),
            )
        except (ValueError, TypeError, KeyError, AttributeError):
            logger.warning("Removing corrupt client cache entry %s", storage_key)
            self._discard(storage_key)
            return None
        return entry

    def _discard(self, storage_key: str) -> None:
        try:
            self._store.remove(storage_key)
        except OSError as exc:
            logger.warning("Could not remove client cache entry %s: %s", storage_key, exc)

    def _expired(self, entry: ClientCacheEntry) -> bool:
        return self._clock() - entry.saved_at >= self._ttl

    def get(self, scope: str, key: str) -> ClientCacheEntry | None:
        storage_key = self.storage_key(scope, key)
        entry = self._decode(storage_key)
        if entry is None:
            return None
        if self._expired(entry):
            self._discard(storage_key)
            return None
        return entry

    def put(self, scope: str, key: str, entry: ClientCacheEntry) -> None:
        payload = asdict(entry)
        payload["savedAt"] = payload.pop("saved_at")
        self._store.set(self.storage_key(scope, key), json.dumps(payload, ensure_ascii=False))

    def _cache_keys(self) -> list[str]:
        return [key for key in self._store.keys() if key.startswith(STORAGE_PREFIX)]

    def purge_expired(self) -> int:
        removed = 0
        for storage_key in self._cache_keys():
            entry = self._decode(storage_key)
            if entry is None:
                removed += 1
            elif self._expired(entry):
                self._discard(storage_key)
                removed += 1
        return removed

    def purge_foreign(self) -> int:
        """Drop entries that point anywhere other than the local image proxy."""

        removed = 0
        for storage_key in self._cache_keys():
            entry = self._decode(storage_key)
            if entry is None:
                removed += 1
            elif not is_local_url(entry.url):
                self._discard(storage_key)
                removed += 1
        if removed:
            logger.info("Purged %s foreign or corrupt client cache entries", removed)
        return removed


__all__ = [
    "ClientCacheEntry",
    "ClientImageCache",
    "JsonFileStore",
    "is_local_url",
]
