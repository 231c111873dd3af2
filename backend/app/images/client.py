from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any

import httpx

from .cache import ImageKind, ImageOrigin
from .client_cache import ClientCacheEntry, ClientImageCache, is_local_url
from .service import request_key
from .synthetic import synthetic_data_uri

logger = logging.getLogger(__name__)


class ImageClient:
    """Async client for the image endpoints with a persisted local cache."""

    def __init__(self, http: httpx.AsyncClient, cache: ClientImageCache) -> None:
        self._http = http
        self._cache = cache
        self._pending: dict[str, asyncio.Task[dict[str, Any]]] = {}

    def prepare(self) -> dict[str, int]:
        """Startup hygiene: drop foreign, corrupt and expired entries."""

        foreign = self._cache.purge_foreign()
        expired = self._cache.purge_expired()
        return {"foreign": foreign, "expired": expired}

    async def load(
        self,
        kind: ImageKind | str = ImageKind.COVER,
        query: str | None = None,
        city: str | None = None,
        mood: str | None = None,
        weather: str | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> dict[str, Any]:
        kind = ImageKind(kind)
        key, _, width, height = request_key(kind, query, city, mood, weather, width, height)

        cached = self._cache.get(kind.value, key)
        if cached is not None:
            return {"url": cached.url, "source": cached.source, "key": cached.key, "cached": True}

        pending_key = f"{kind.value}:{key}"
        task = self._pending.get(pending_key)
        if task is None:
            params = {
                "q": query,
                "city": city,
                "mood": mood,
                "weather": weather,
                "w": width,
                "h": height,
            }
            context = {name: value for name, value in params.items() if value is not None}
            task = asyncio.create_task(self._fetch(kind, key, context, mood))
            self._pending[pending_key] = task
            task.add_done_callback(functools.partial(self._settle, pending_key))
        return await asyncio.shield(task)

    def _settle(self, pending_key: str, task: asyncio.Task[dict[str, Any]]) -> None:
        if self._pending.get(pending_key) is task:
            del self._pending[pending_key]

    async def _fetch(
        self,
        kind: ImageKind,
        key: str,
        params: dict[str, Any],
        mood: str | None,
    ) -> dict[str, Any]:
        try:
            response = await self._http.get(f"/api/images/{kind.value}", params=params)
            response.raise_for_status()
            payload = response.json()
            url = str(payload["url"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Image request failed, using inline fallback: %s", exc)
            return {
                "url": synthetic_data_uri(int(params["w"]), int(params["h"]), mood),
                "source": ImageOrigin.SYNTHETIC.value,
                "key": key,
            }

        if is_local_url(url):
            entry = ClientCacheEntry(
                url=url,
                source=str(payload.get("source", "")),
                key=str(payload.get("key", key)),
                saved_at=self._cache.now(),
                context={name: value for name, value in params.items() if name not in {"w", "h"}},
            )
            try:
                self._cache.put(kind.value, key, entry)
            except OSError as exc:
                logger.warning("Could not persist client cache entry %s: %s", key, exc)
        return payload


__all__ = ["ImageClient"]
