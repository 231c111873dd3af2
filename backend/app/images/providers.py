from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from ..metrics import IMAGE_RATE_LIMITED
from ..services.ratelimit import TokenBucket
from . import safety
from .cache import ImageKind, ImageOrigin
from .queries import pick_seed_index, seed_mood

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRequest:
    """Everything a source needs to produce bytes for one cache slot."""

    key: str
    kind: ImageKind
    width: int
    height: int
    queries: tuple[str, ...] = ()
    city: str | None = None
    mood: str | None = None


@dataclass
class ProviderResult:
    content: bytes
    source: str
    query: str
    meta: dict[str, Any] | None = field(default=None)


class ProviderError(Exception):
    """Raised by an image source when it cannot serve a request."""

    def __init__(self, provider: str, reason: str, detail: str | None = None) -> None:
        message = f"{provider}: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.provider = provider
        self.reason = reason


class ImageSource(ABC):
    """One link of the provider chain."""

    name: str

    @abstractmethod
    async def attempt(self, request: ImageRequest) -> ProviderResult:
        """Return image bytes for ``request`` or raise :class:`ProviderError`."""


async def download_image(
    client: httpx.AsyncClient,
    provider: str,
    url: str | httpx.URL,
    *,
    headers: Mapping[str, str] | None = None,
    follow_redirects: bool = False,
) -> bytes:
    try:
        response = await client.get(url, headers=headers, follow_redirects=follow_redirects)
        response.raise_for_status()
    except httpx.TimeoutException as exc:
        raise ProviderError(provider, "timeout", str(exc)) from exc
    except httpx.HTTPStatusError as exc:
        raise ProviderError(provider, "http_status", str(exc.response.status_code)) from exc
    except httpx.HTTPError as exc:
        raise ProviderError(provider, "network", str(exc)) from exc

    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise ProviderError(provider, "not_image", content_type or "missing content type")
    if not response.content:
        raise ProviderError(provider, "empty_body")
    return response.content


def _crop_url(base: str, width: int, height: int) -> httpx.URL:
    return httpx.URL(base).copy_merge_params({"w": width, "h": height, "fit": "crop"})


class UnsplashSearchSource(ImageSource):
    """Primary provider: photo search with safety filtering and scoring."""

    name = ImageOrigin.UNSPLASH.value

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        access_key: str | None,
        limiter: TokenBucket,
        api_url: str = "https://api.unsplash.com",
    ) -> None:
        self._client = client
        self._access_key = access_key
        self._limiter = limiter
        self._api_url = api_url.rstrip("/")

    @property
    def available(self) -> bool:
        return bool(self._access_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Client-ID {self._access_key}",
            "Accept-Version": "v1",
        }

    async def attempt(self, request: ImageRequest) -> ProviderResult:
        if not self.available:
            raise ProviderError(self.name, "disabled")

        last_reason = "no_results"
        for query in request.queries:
            if not self._limiter.try_consume():
                IMAGE_RATE_LIMITED.inc()
                last_reason = "rate_limited"
                logger.info("Rate limited, skipping photo search", extra={"query": query})
                continue
            try:
                return await self._attempt_query(query, request)
            except ProviderError as exc:
                last_reason = exc.reason
                logger.info(
                    "Photo search attempt failed: %s",
                    exc,
                    extra={"query": query, "image_key": request.key},
                )
        raise ProviderError(self.name, last_reason)

    async def _attempt_query(self, query: str, request: ImageRequest) -> ProviderResult:
        results = await self.search(query)
        photo = safety.pick_best(results, request.width, request.height)
        if photo is None:
            raise ProviderError(self.name, "no_safe_candidate")
        raw_url = (photo.get("urls") or {}).get("raw")
        if not raw_url:
            raise ProviderError(self.name, "malformed_result", "missing urls.raw")

        content = await download_image(
            self._client,
            self.name,
            _crop_url(raw_url, request.width, request.height),
        )
        user = photo.get("user") or {}
        return ProviderResult(
            content=content,
            source=self.name,
            query=query,
            meta={
                "query": query,
                "photoId": photo.get("id"),
                "photographer": user.get("name"),
            },
        )

    async def search(self, query: str) -> list[Mapping[str, Any]]:
        params = {
            "query": query,
            "orientation": "landscape",
            "order_by": "relevant",
            "content_filter": "high",
            "per_page": 30,
        }
        try:
            response = await self._client.get(
                f"{self._api_url}/search/photos",
                params=params,
                headers=self._headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(self.name, "timeout", str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError(self.name, "http_status", str(exc.response.status_code)) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, "network", str(exc)) from exc
        except ValueError as exc:
            raise ProviderError(self.name, "malformed_result", "invalid json") from exc

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            raise ProviderError(self.name, "no_results")
        return [item for item in results if isinstance(item, Mapping)]


class SeedLibrarySource(ImageSource):
    """Curated per-mood library; the pick is a pure function of city and mood."""

    name = ImageOrigin.SEED.value

    def __init__(self, client: httpx.AsyncClient, *, library_path: Path) -> None:
        self._client = client
        self._library_path = Path(library_path)
        self._library: dict[str, list[dict[str, Any]]] | None = None

    def load_library(self) -> dict[str, list[dict[str, Any]]]:
        if self._library is None:
            try:
                raw = json.loads(self._library_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise ProviderError(self.name, "library_unavailable", str(exc)) from exc
            if not isinstance(raw, dict):
                raise ProviderError(self.name, "library_unavailable", "expected an object")
            self._library = {
                str(mood).lower(): [item for item in items if isinstance(item, dict)]
                for mood, items in raw.items()
                if isinstance(items, list)
            }
        return self._library

    def pick(self, city: str | None, mood: str | None) -> dict[str, Any]:
        library = self.load_library()
        bucket = seed_mood(mood)
        seeds: Sequence[dict[str, Any]] = library.get(bucket) or library.get("neutral") or ()
        if not seeds:
            raise ProviderError(self.name, "no_seeds", bucket)
        return seeds[pick_seed_index(city, bucket, len(seeds))]

    async def attempt(self, request: ImageRequest) -> ProviderResult:
        seed = self.pick(request.city, request.mood)
        seed_id = seed.get("id")
        url = seed.get("url")
        if not seed_id or not url:
            raise ProviderError(self.name, "invalid_seed")
        content = await download_image(
            self._client,
            self.name,
            _crop_url(url, request.width, request.height),
        )
        return ProviderResult(
            content=content,
            source=self.name,
            query=f"seed:{seed_id}",
            meta={"seedId": seed_id, "description": seed.get("description")},
        )


class PlaceholderSource(ImageSource):
    """Random-photo service addressed by the cache key, stable per key."""

    name = ImageOrigin.PLACEHOLDER.value

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url_template: str = "https://picsum.photos/seed/{key}/{width}/{height}",
    ) -> None:
        self._client = client
        self._url_template = url_template

    def url_for(self, request: ImageRequest) -> str:
        return self._url_template.format(key=request.key, width=request.width, height=request.height)

    async def attempt(self, request: ImageRequest) -> ProviderResult:
        content = await download_image(
            self._client,
            self.name,
            self.url_for(request),
            follow_redirects=True,
        )
        return ProviderResult(content=content, source=self.name, query=f"picsum:{request.key}")


__all__ = [
    "ImageRequest",
    "ImageSource",
    "PlaceholderSource",
    "ProviderError",
    "ProviderResult",
    "SeedLibrarySource",
    "UnsplashSearchSource",
    "download_image",
]
