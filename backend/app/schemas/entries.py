from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..db.models import MoodEntry
from ..utils.tags import decode_tags, normalize_tags


class Mood(str, Enum):
    HAPPY = "happy"
    CALM = "calm"
    NEUTRAL = "neutral"
    SAD = "sad"
    STRESSED = "stressed"


class WeatherSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    temp_c: float | None = Field(default=None, alias="tempC")
    humidity: float | None = Field(default=None, ge=0, le=100)
    condition: str | None = Field(default=None, max_length=32)


def _clean_optional_text(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class EntryCreate(BaseModel):
    date: dt.date
    mood: Mood
    city: str | None = Field(default=None, max_length=120)
    tags: list[str] = Field(default_factory=list)
    note: str | None = Field(default=None, max_length=2000)
    weather: WeatherSnapshot | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str]:
        return normalize_tags(value)  # type: ignore[arg-type]

    @field_validator("city", "note", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        return _clean_optional_text(value)


class EntryUpdate(BaseModel):
    date: dt.date | None = None
    mood: Mood | None = None
    city: str | None = Field(default=None, max_length=120)
    tags: list[str] | None = None
    note: str | None = Field(default=None, max_length=2000)
    weather: WeatherSnapshot | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str] | None:
        if value is None:
            return None
        return normalize_tags(value)  # type: ignore[arg-type]

    @field_validator("city", "note", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        return _clean_optional_text(value)

    def to_changes(self) -> dict[str, object]:
        """Storage column changes for the fields the caller actually sent."""

        sent = self.model_dump(exclude_unset=True)
        changes: dict[str, object] = {}
        if sent.get("date") is not None:
            changes["day"] = self.date
        if sent.get("mood") is not None:
            changes["mood"] = self.mood.value  # type: ignore[union-attr]
        if sent.get("city") is not None:
            changes["city"] = self.city
        if sent.get("tags") is not None:
            changes["tags"] = self.tags
        if "note" in sent:
            changes["note"] = self.note
        if "weather" in sent:
            weather = self.weather or WeatherSnapshot()
            changes["weather_temp_c"] = weather.temp_c
            changes["weather_humidity"] = weather.humidity
            changes["weather_condition"] = weather.condition
        return changes


class EntryModel(BaseModel):
    id: int
    date: dt.date
    mood: Mood
    city: str | None = None
    tags: list[str]
    note: str | None = None
    weather: WeatherSnapshot | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    @classmethod
    def from_entry(cls, entry: MoodEntry) -> EntryModel:
        weather = None
        if any(
            value is not None
            for value in (entry.weather_temp_c, entry.weather_humidity, entry.weather_condition)
        ):
            weather = WeatherSnapshot(
                temp_c=entry.weather_temp_c,
                humidity=entry.weather_humidity,
                condition=entry.weather_condition,
            )
        return cls(
            id=entry.id,
            date=entry.day,
            mood=Mood(entry.mood),
            city=entry.city,
            tags=decode_tags(entry.tags),
            note=entry.note,
            weather=weather,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class EntryDeleteResponse(BaseModel):
    ok: bool = True


__all__ = [
    "EntryCreate",
    "EntryDeleteResponse",
    "EntryModel",
    "EntryUpdate",
    "Mood",
    "WeatherSnapshot",
]
