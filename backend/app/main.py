from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from backend.db import SCHEMA_VERSION_KEY, create_engine, create_session_factory, init_db

from .api.routes import IMAGE_CACHE_CONTROL
from .api.routes import router as api_router
from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .images import ImageResolutionService
from .insights import MoodInsightsEngine
from .middleware import RequestLoggingMiddleware
from .services.ratelimit import RateLimiter
from .services.storage import StorageService
from .services.weather import WeatherService

logger = logging.getLogger(__name__)
CACHE_FILENAME_RE = re.compile(r"^[0-9a-f]{40}\.jpg$")


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        settings.request_timeout_seconds,
        connect=min(5.0, settings.request_timeout_seconds),
    )
    return httpx.AsyncClient(timeout=timeout, headers={"User-Agent": f"MoodPeek/{settings.version}"})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure application services during startup and ensure graceful shutdown."""

    configure_logging()
    settings: Settings = get_settings()

    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    await init_db(engine, session_factory, settings.version, settings.database_url)
    storage_service = StorageService(session_factory)

    http_client = build_http_client(settings)
    weather_service = WeatherService(
        http_client,
        api_url=settings.weather_api_url,
        enabled=settings.weather_enabled,
        retries=settings.retry_attempts,
    )
    image_service = ImageResolutionService.from_settings(settings, http_client)
    image_service.disk_cache.ensure_directory()
    await image_service.sweep_disk(settings.image_cache_sweep_sec)
    insights_engine = MoodInsightsEngine(storage_service)

    app.state.settings = settings
    app.state.storage_service = storage_service
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    app.state.http_client = http_client
    app.state.weather_service = weather_service
    app.state.image_service = image_service
    app.state.insights_engine = insights_engine
    app.state.rate_limiter = RateLimiter()

    logger.info(
        "MoodPeek started version=%s photo_provider=%s cache_dir=%s",
        settings.version,
        "enabled" if settings.unsplash_access_key else "disabled",
        settings.image_cache_dir,
    )

    try:
        yield
    finally:
        await http_client.aclose()
        await app.state.db_engine.dispose()


app = FastAPI(title="MoodPeek", version=get_settings().version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/imgcache/{filename}")
async def cached_image(filename: str, request: Request) -> FileResponse:
    if not CACHE_FILENAME_RE.fullmatch(filename):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    image_service: ImageResolutionService = request.app.state.image_service
    path = image_service.disk_cache.directory / filename
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return FileResponse(
        path,
        media_type="image/jpeg",
        headers={"Cache-Control": IMAGE_CACHE_CONTROL},
    )


@app.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    return {"status": "ok", "version": settings.version}


@app.get("/readyz")
async def readyz(request: Request) -> dict[str, Any]:
    storage: StorageService = request.app.state.storage_service
    image_service: ImageResolutionService = request.app.state.image_service

    db_ok = True
    db_detail = "ok"
    schema_version: str | None = None
    try:
        await storage.healthcheck()
        schema_version = await storage.get_setting(SCHEMA_VERSION_KEY)
    except Exception as exc:  # pragma: no cover - defensive logging
        logger.exception("Database readiness check failed")
        db_ok = False
        db_detail = str(exc)

    cache_dir = image_service.disk_cache.directory
    cache_ok = cache_dir.is_dir()
    return {
        "ready": db_ok and cache_ok,
        "db": {"ok": db_ok, "detail": db_detail, "schema_version": schema_version},
        "image_cache": {"ok": cache_ok, "detail": str(cache_dir)},
    }


@app.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
