from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import httpx

from ..core.config import Settings
from ..metrics import IMAGE_CACHE_HITS, IMAGE_PROVIDER_FAILURES, IMAGE_RESOLUTIONS
from ..services.ratelimit import TokenBucket
from .cache import CachedImage, DiskImageCache, ImageKind, ImageOrigin, MemoryImageCache
from .providers import (
    ImageRequest,
    ImageSource,
    PlaceholderSource,
    ProviderError,
    ProviderResult,
    SeedLibrarySource,
    UnsplashSearchSource,
)
from .queries import build_cover_queries, cache_key, context_query, extract_mood, normalize_query
from .synthetic import synthetic_data_uri

logger = logging.getLogger(__name__)

KIND_DIMENSIONS: dict[ImageKind, tuple[int, int]] = {
    ImageKind.COVER: (800, 520),
    ImageKind.HERO: (1600, 900),
}
HERO_DEFAULT_QUERY = "landscape sky nature"
MAX_DIMENSION = 4000


def _dimension(value: int | str | None, default: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return min(number, MAX_DIMENSION)


def request_key(
    kind: ImageKind | str,
    query: str | None = None,
    city: str | None = None,
    mood: str | None = None,
    weather: str | None = None,
    width: int | None = None,
    height: int | None = None,
) -> tuple[str, str | None, int, int]:
    """Cache key, effective query and dimensions for an image request."""

    kind = ImageKind(kind)
    default_width, default_height = KIND_DIMENSIONS[kind]
    width = _dimension(width, default_width)
    height = _dimension(height, default_height)
    if kind is ImageKind.HERO and not normalize_query(query) and not normalize_query(mood):
        query = HERO_DEFAULT_QUERY
    key = cache_key(context_query(query, city, mood, weather), width, height)
    return key, query, width, height


class ImageResolutionService:
    """Resolve image requests through memory, disk and the provider chain.

    ``resolve`` is total: it always returns a usable reference. Provider
    failures move on to the next source, and when every source fails the
    caller gets an inline SVG that is never cached. Concurrent requests for
    one key share a single in-flight fetch.
    """

    def __init__(
        self,
        *,
        sources: Sequence[ImageSource],
        disk_cache: DiskImageCache,
        memory_cache: MemoryImageCache,
        ttl_by_kind: Mapping[ImageKind, int],
        memory_ttl_seconds: int,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._sources = list(sources)
        self._disk = disk_cache
        self._memory = memory_cache
        self._ttl_by_kind = dict(ttl_by_kind)
        self._memory_ttl = memory_ttl_seconds
        self._clock = clock or time.time
        self._inflight: dict[str, asyncio.Task[CachedImage]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        limiter: TokenBucket | None = None,
    ) -> ImageResolutionService:
        limiter = limiter or TokenBucket(
            max_requests_per_hour=settings.unsplash_rate_limit,
            max_burst=settings.unsplash_max_burst,
        )
        sources: list[ImageSource] = [
            UnsplashSearchSource(
                client,
                access_key=settings.unsplash_access_key,
                limiter=limiter,
                api_url=settings.unsplash_api_url,
            ),
            SeedLibrarySource(client, library_path=settings.seed_library_path),
            PlaceholderSource(client, url_template=settings.placeholder_url),
        ]
        return cls(
            sources=sources,
            disk_cache=DiskImageCache(settings.image_cache_dir),
            memory_cache=MemoryImageCache(settings.memory_cache_size),
            ttl_by_kind={
                ImageKind.COVER: settings.cover_cache_ttl_sec,
                ImageKind.HERO: settings.hero_cache_ttl_sec,
            },
            memory_ttl_seconds=settings.memory_cache_ttl_sec,
        )

    @property
    def disk_cache(self) -> DiskImageCache:
        return self._disk

    @property
    def sources(self) -> list[ImageSource]:
        return list(self._sources)

    def inflight_count(self) -> int:
        return len(self._inflight)

    async def resolve(
        self,
        kind: ImageKind | str = ImageKind.COVER,
        query: str | None = None,
        city: str | None = None,
        mood: str | None = None,
        weather: str | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> CachedImage:
        kind = ImageKind(kind)
        key, query, width, height = request_key(kind, query, city, mood, weather, width, height)
        ttl = self._ttl_by_kind[kind]

        cached = self._memory.get(key)
        if cached is not None:
            IMAGE_CACHE_HITS.labels(layer="memory").inc()
            IMAGE_RESOLUTIONS.labels(kind=kind.value, source=cached.source).inc()
            return cached

        on_disk = self._disk.get(key, ttl)
        if on_disk is not None:
            IMAGE_CACHE_HITS.labels(layer="disk").inc()
            IMAGE_RESOLUTIONS.labels(kind=kind.value, source=on_disk.source).inc()
            self._memory.put(key, on_disk, min(ttl, self._memory_ttl))
            return on_disk

        task = self._inflight.get(key)
        if task is None:
            effective_mood = normalize_query(mood) or extract_mood(query)
            request = ImageRequest(
                key=key,
                kind=kind,
                width=width,
                height=height,
                queries=tuple(build_cover_queries(query, city, effective_mood, weather)),
                city=city,
                mood=effective_mood,
            )
            task = asyncio.create_task(self._fetch(request, ttl))
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[CachedImage]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch(self, request: ImageRequest, ttl: int) -> CachedImage:
        for source in self._sources:
            try:
                result = await source.attempt(request)
            except ProviderError as exc:
                IMAGE_PROVIDER_FAILURES.labels(provider=exc.provider, reason=exc.reason).inc()
                logger.info(
                    "Image source failed: %s",
                    exc,
                    extra={"image_key": request.key, "source": source.name},
                )
                continue
            except Exception:
                IMAGE_PROVIDER_FAILURES.labels(provider=source.name, reason="unexpected").inc()
                logger.exception(
                    "Image source raised unexpectedly",
                    extra={"image_key": request.key, "source": source.name},
                )
                continue

            try:
                image = await self._store(request, result)
            except OSError as exc:
                IMAGE_PROVIDER_FAILURES.labels(provider=source.name, reason="disk_write").inc()
                logger.warning(
                    "Failed to persist image: %s",
                    exc,
                    extra={"image_key": request.key, "source": source.name},
                )
                continue

            self._memory.put(request.key, image, min(ttl, self._memory_ttl))
            IMAGE_RESOLUTIONS.labels(kind=request.kind.value, source=image.source).inc()
            logger.info(
                "Resolved image",
                extra={"image_key": request.key, "source": image.source, "query": result.query},
            )
            return image

        logger.warning(
            "All image sources failed, serving inline placeholder",
            extra={"image_key": request.key, "source": ImageOrigin.SYNTHETIC.value},
        )
        IMAGE_RESOLUTIONS.labels(kind=request.kind.value, source=ImageOrigin.SYNTHETIC.value).inc()
        return CachedImage(
            key=request.key,
            url=synthetic_data_uri(request.width, request.height, request.mood),
            source=ImageOrigin.SYNTHETIC.value,
            saved_at=self._clock(),
        )

    async def _store(self, request: ImageRequest, result: ProviderResult) -> CachedImage:
        loop = asyncio.get_running_loop()
        write = functools.partial(
            self._disk.put,
            request.key,
            result.content,
            query=result.query,
            source=result.source,
            meta=result.meta,
        )
        return await loop.run_in_executor(None, write)

    async def clear(self) -> dict[str, Any]:
        memory_entries = self._memory.clear()
        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(None, self._disk.clear)
        logger.info("Image caches cleared", extra={"extra_fields": {"files": files}})
        return {"memory_entries": memory_entries, "files_removed": files}

    async def sweep_disk(self, max_age_seconds: float) -> int:
        loop = asyncio.get_running_loop()
        removed = await loop.run_in_executor(None, self._disk.sweep, max_age_seconds)
        if removed:
            logger.info("Swept stale cache files", extra={"extra_fields": {"files": removed}})
        return removed


__all__ = ["HERO_DEFAULT_QUERY", "KIND_DIMENSIONS", "ImageResolutionService", "request_key"]
