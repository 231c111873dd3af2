from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db.models import MoodEntry, SettingEntry, WeeklySummary
from ..utils.tags import encode_tags

_UPDATABLE_FIELDS = frozenset(
    {
        "day",
        "mood",
        "city",
        "tags",
        "note",
        "weather_temp_c",
        "weather_humidity",
        "weather_condition",
    }
)


class StorageError(Exception):
    """Base class for persistence-level failures surfaced to callers."""


class DuplicateEntryError(StorageError):
    def __init__(self, day: date) -> None:
        super().__init__(f"entry for {day.isoformat()} already exists")
        self.day = day


class EntryNotFoundError(StorageError):
    def __init__(self, entry_id: int) -> None:
        super().__init__(f"entry {entry_id} not found")
        self.entry_id = entry_id


class StorageService:
    """Persist mood entries, weekly summaries and settings."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def healthcheck(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    # -- settings helpers ------------------------------------------------
    async def get_setting(self, key: str) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingEntry).where(SettingEntry.key == key)
            )
            entry = result.scalar_one_or_none()
            return entry.value if entry else None

    async def set_setting(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingEntry).where(SettingEntry.key == key)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                entry = SettingEntry(key=key, value=value)
                session.add(entry)
            else:
                entry.value = value
            await session.commit()

    # -- mood entries ----------------------------------------------------
    async def create_entry(
        self,
        *,
        day: date,
        mood: str,
        city: str | None = None,
        tags: Iterable[str] | None = None,
        note: str | None = None,
        weather_temp_c: float | None = None,
        weather_humidity: float | None = None,
        weather_condition: str | None = None,
    ) -> MoodEntry:
        async with self._session_factory() as session:
            existing = await session.scalar(select(MoodEntry.id).where(MoodEntry.day == day))
            if existing is not None:
                raise DuplicateEntryError(day)
            entry = MoodEntry(
                day=day,
                mood=mood,
                city=city,
                tags=encode_tags(tags),
                note=note,
                weather_temp_c=weather_temp_c,
                weather_humidity=weather_humidity,
                weather_condition=weather_condition,
            )
            session.add(entry)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEntryError(day) from exc
            await session.refresh(entry)
            return entry

    async def get_entry(self, entry_id: int) -> MoodEntry | None:
        async with self._session_factory() as session:
            return await session.get(MoodEntry, entry_id)

    async def list_entries(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
        mood: str | None = None,
        city: str | None = None,
        limit: int | None = None,
    ) -> Sequence[MoodEntry]:
        """Entries newest first; both date bounds are inclusive."""

        stmt = select(MoodEntry)
        if start is not None:
            stmt = stmt.where(MoodEntry.day >= start)
        if end is not None:
            stmt = stmt.where(MoodEntry.day <= end)
        if mood:
            stmt = stmt.where(MoodEntry.mood == mood)
        if city:
            stmt = stmt.where(MoodEntry.city == city)
        stmt = stmt.order_by(MoodEntry.day.desc())
        if limit:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_entry(self, entry_id: int, changes: dict[str, Any]) -> MoodEntry:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unsupported fields: {', '.join(sorted(unknown))}")
        async with self._session_factory() as session:
            entry = await session.get(MoodEntry, entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)

            new_day = changes.get("day")
            if new_day is not None and new_day != entry.day:
                conflict = await session.scalar(
                    select(MoodEntry.id)
                    .where(MoodEntry.day == new_day)
                    .where(MoodEntry.id != entry_id)
                )
                if conflict is not None:
                    raise DuplicateEntryError(new_day)

            for field, value in changes.items():
                if field == "tags":
                    value = encode_tags(value)
                setattr(entry, field, value)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEntryError(new_day or entry.day) from exc
            await session.refresh(entry)
            return entry

    async def delete_entry(self, entry_id: int) -> None:
        async with self._session_factory() as session:
            entry = await session.get(MoodEntry, entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            await session.delete(entry)
            await session.commit()

    async def fetch_entries_between(self, start: date, end: date) -> Sequence[MoodEntry]:
        """Entries with ``start <= day < end`` in chronological order."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(MoodEntry)
                .where(MoodEntry.day >= start)
                .where(MoodEntry.day < end)
                .order_by(MoodEntry.day.asc())
            )
            return list(result.scalars().all())

    # -- weekly summaries ------------------------------------------------
    async def save_weekly_summary(
        self,
        *,
        week_start: date,
        range_label: str,
        entries_count: int,
        top_mood: str | None,
        avg_score: float | None,
        grade: str | None,
        trend: str | None,
        positive_tags: list[str],
        negative_tags: list[str],
        best_day: str | None,
        worst_day: str | None,
        computed_at: datetime,
    ) -> WeeklySummary:
        payload = {
            "range_label": range_label,
            "entries_count": entries_count,
            "top_mood": top_mood,
            "avg_score": avg_score,
            "grade": grade,
            "trend": trend,
            "positive_tags": json.dumps(positive_tags, ensure_ascii=False),
            "negative_tags": json.dumps(negative_tags, ensure_ascii=False),
            "best_day": best_day,
            "worst_day": worst_day,
            "computed_at": computed_at,
        }
        async with self._session_factory() as session:
            summary = await session.scalar(
                select(WeeklySummary).where(WeeklySummary.week_start == week_start)
            )
            if summary is None:
                summary = WeeklySummary(week_start=week_start, **payload)
                session.add(summary)
            else:
                for key, value in payload.items():
                    setattr(summary, key, value)
            await session.commit()
            await session.refresh(summary)
            return summary

    async def get_weekly_summary(self, week_start: date) -> WeeklySummary | None:
        """Read back the stored summary for a week; reports are always recomputed."""

        async with self._session_factory() as session:
            return await session.scalar(
                select(WeeklySummary).where(WeeklySummary.week_start == week_start)
            )

    async def list_weekly_summaries(self, limit: int = 4) -> Sequence[WeeklySummary]:
        """Most recent stored summaries, newest week first."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(WeeklySummary)
                .order_by(WeeklySummary.week_start.desc())
                .limit(limit)
            )
            return list(result.scalars().all())


__all__ = [
    "DuplicateEntryError",
    "EntryNotFoundError",
    "StorageError",
    "StorageService",
]
