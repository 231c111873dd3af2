from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ..core.security import require_admin_token
from ..images import ImageKind, ImageOrigin, ImageResolutionService
from ..insights import InvalidDateError, MoodInsightsEngine
from ..insights.weekly import coerce_date
from ..metrics import ENTRY_WRITES
from ..schemas.entries import (
    EntryCreate,
    EntryDeleteResponse,
    EntryModel,
    EntryUpdate,
    Mood,
    WeatherSnapshot,
)
from ..schemas.images import CacheClearResponse, ImageResponse
from ..schemas.insights import RangeReport, WeeklyReport
from ..services.ratelimit import RateLimiter
from ..services.storage import DuplicateEntryError, EntryNotFoundError, StorageService
from ..services.weather import WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["core"])

IMAGE_CACHE_CONTROL = "public, max-age=3600"
ENTRY_WRITE_LIMIT = 30
ENTRY_WRITE_WINDOW_SECONDS = 60


def get_storage_service(request: Request) -> StorageService:
    return request.app.state.storage_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather_service


def get_image_service(request: Request) -> ImageResolutionService:
    return request.app.state.image_service


def get_insights_engine(request: Request) -> MoodInsightsEngine:
    return request.app.state.insights_engine


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


def _throttle_writes(request: Request, limiter: RateLimiter) -> None:
    key = f"entries:{_client_key(request)}"
    if not limiter.allow(key, limit=ENTRY_WRITE_LIMIT, window_seconds=ENTRY_WRITE_WINDOW_SECONDS):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


def _parse_date(value: str | None, field: str) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return coerce_date(value)
    except InvalidDateError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"invalid {field} date",
        ) from exc


# -- entries -------------------------------------------------------------


@router.post("/entries", response_model=EntryModel, status_code=status.HTTP_201_CREATED)
async def create_entry(
    payload: EntryCreate,
    request: Request,
    storage: StorageService = Depends(get_storage_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    weather_service: WeatherService = Depends(get_weather_service),
) -> EntryModel:
    _throttle_writes(request, limiter)

    weather = payload.weather
    if weather is None and payload.city:
        reading = await weather_service.current(payload.city)
        if reading is not None:
            weather = WeatherSnapshot(
                temp_c=reading.temp_c,
                humidity=reading.humidity,
                condition=reading.condition,
            )

    try:
        entry = await storage.create_entry(
            day=payload.date,
            mood=payload.mood.value,
            city=payload.city,
            tags=payload.tags,
            note=payload.note,
            weather_temp_c=weather.temp_c if weather else None,
            weather_humidity=weather.humidity if weather else None,
            weather_condition=weather.condition if weather else None,
        )
    except DuplicateEntryError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    ENTRY_WRITES.labels(operation="create").inc()
    return EntryModel.from_entry(entry)


@router.get("/entries", response_model=list[EntryModel])
async def list_entries(
    storage: StorageService = Depends(get_storage_service),
    start: str | None = Query(default=None, alias="from"),
    end: str | None = Query(default=None, alias="to"),
    mood: Mood | None = Query(default=None),
    city: str | None = Query(default=None, max_length=120),
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> list[EntryModel]:
    entries = await storage.list_entries(
        start=_parse_date(start, "from"),
        end=_parse_date(end, "to"),
        mood=mood.value if mood else None,
        city=city.strip() if city else None,
        limit=limit,
    )
    return [EntryModel.from_entry(entry) for entry in entries]


@router.get("/entries/{entry_id}", response_model=EntryModel)
async def read_entry(
    entry_id: int,
    storage: StorageService = Depends(get_storage_service),
) -> EntryModel:
    entry = await storage.get_entry(entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="entry not found")
    return EntryModel.from_entry(entry)


@router.put("/entries/{entry_id}", response_model=EntryModel)
async def update_entry(
    entry_id: int,
    payload: EntryUpdate,
    request: Request,
    storage: StorageService = Depends(get_storage_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> EntryModel:
    _throttle_writes(request, limiter)
    try:
        entry = await storage.update_entry(entry_id, payload.to_changes())
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateEntryError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    ENTRY_WRITES.labels(operation="update").inc()
    return EntryModel.from_entry(entry)


@router.delete("/entries/{entry_id}", response_model=EntryDeleteResponse)
async def delete_entry(
    entry_id: int,
    request: Request,
    storage: StorageService = Depends(get_storage_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> EntryDeleteResponse:
    _throttle_writes(request, limiter)
    try:
        await storage.delete_entry(entry_id)
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    ENTRY_WRITES.labels(operation="delete").inc()
    return EntryDeleteResponse(ok=True)


# -- images --------------------------------------------------------------


def _image_response(response: Response, payload: dict[str, Any]) -> ImageResponse:
    if payload["source"] == ImageOrigin.SYNTHETIC.value:
        response.headers["Cache-Control"] = "no-store"
    else:
        response.headers["Cache-Control"] = IMAGE_CACHE_CONTROL
    return ImageResponse(**payload)


@router.get("/images/cover", response_model=ImageResponse, response_model_exclude_none=True)
async def cover_image(
    response: Response,
    images: ImageResolutionService = Depends(get_image_service),
    q: str | None = Query(default=None, max_length=200),
    city: str | None = Query(default=None, max_length=120),
    mood: str | None = Query(default=None, max_length=32),
    weather: str | None = Query(default=None, max_length=32),
    w: int | None = Query(default=None),
    h: int | None = Query(default=None),
) -> ImageResponse:
    image = await images.resolve(ImageKind.COVER, q, city, mood, weather, w, h)
    return _image_response(response, image.to_payload())


@router.get("/images/hero", response_model=ImageResponse, response_model_exclude_none=True)
async def hero_image(
    response: Response,
    images: ImageResolutionService = Depends(get_image_service),
    q: str | None = Query(default=None, max_length=200),
    mood: str | None = Query(default=None, max_length=32),
    w: int | None = Query(default=None),
    h: int | None = Query(default=None),
) -> ImageResponse:
    image = await images.resolve(ImageKind.HERO, q, None, mood, None, w, h)
    return _image_response(response, image.to_payload())


@router.post(
    "/images/clear-cache",
    response_model=CacheClearResponse,
    dependencies=[Depends(require_admin_token)],
)
async def clear_image_cache(
    images: ImageResolutionService = Depends(get_image_service),
) -> CacheClearResponse:
    result = await images.clear()
    return CacheClearResponse(**result)


# -- insights ------------------------------------------------------------


@router.get("/insights/weekly", response_model=WeeklyReport)
async def weekly_insights(
    engine: MoodInsightsEngine = Depends(get_insights_engine),
    start: str | None = Query(default=None),
) -> WeeklyReport:
    if start is None or not start.strip():
        return await engine.current_week_report()
    try:
        return await engine.compute_weekly_report(start)
    except InvalidDateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/insights/weekly/debug")
async def weekly_insights_debug(
    storage: StorageService = Depends(get_storage_service),
    start: str | None = Query(default=None),
) -> dict[str, Any]:
    week_start = _parse_date(start, "start")
    if week_start is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start is required")
    week_end = week_start + timedelta(days=7)
    found = await storage.fetch_entries_between(week_start, week_end)
    latest = await storage.list_entries(limit=3)
    return {
        "range": {"start": week_start.isoformat(), "end": week_end.isoformat()},
        "found": len(found),
        "sample": [
            {"id": entry.id, "date": entry.day.isoformat(), "city": entry.city, "mood": entry.mood}
            for entry in latest
        ],
    }


@router.get("/insights/range", response_model=RangeReport)
async def range_insights(
    engine: MoodInsightsEngine = Depends(get_insights_engine),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
) -> RangeReport:
    if not start or not end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start and end dates are required",
        )
    try:
        return await engine.compute_range_report(start, end)
    except InvalidDateError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


__all__ = ["router"]
