from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path

import pytest

from backend.app.services.storage import (
    DuplicateEntryError,
    EntryNotFoundError,
    StorageService,
)
from backend.db import SCHEMA_VERSION_KEY, create_engine, create_session_factory, init_db


@pytest.mark.anyio
async def test_storage_service_entry_crud(tmp_path: Path) -> None:
    db_path = tmp_path / "test.db"
    database_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_engine(database_url)
    session_factory = create_session_factory(engine)
    await init_db(engine, session_factory, "test", database_url)

    storage = StorageService(session_factory)
    created = await storage.create_entry(
        day=date(2024, 7, 8),
        mood="calm",
        city="Toronto",
        tags=[" Walk ", "walk", "Coffee"],
        note="slow morning",
        weather_temp_c=18.5,
        weather_humidity=60,
        weather_condition="cloudy",
    )
    assert created.id > 0
    assert json.loads(created.tags) == ["walk", "coffee"]
    assert created.created_at is not None

    fetched = await storage.get_entry(created.id)
    assert fetched is not None
    assert fetched.weather_condition == "cloudy"

    updated = await storage.update_entry(created.id, {"mood": "happy", "tags": ["Run"]})
    assert updated.mood == "happy"
    assert json.loads(updated.tags) == ["run"]

    await storage.delete_entry(created.id)
    assert await storage.get_entry(created.id) is None
    with pytest.raises(EntryNotFoundError):
        await storage.delete_entry(created.id)

    await engine.dispose()


@pytest.mark.anyio
async def test_one_entry_per_day(temp_session_factory) -> None:
    storage = StorageService(temp_session_factory)
    first = await storage.create_entry(day=date(2024, 7, 8), mood="sad")
    second = await storage.create_entry(day=date(2024, 7, 9), mood="happy")

    with pytest.raises(DuplicateEntryError) as excinfo:
        await storage.create_entry(day=date(2024, 7, 8), mood="happy")
    assert excinfo.value.day == date(2024, 7, 8)

    with pytest.raises(DuplicateEntryError):
        await storage.update_entry(second.id, {"day": first.day})

    moved = await storage.update_entry(second.id, {"day": date(2024, 7, 10)})
    assert moved.day == date(2024, 7, 10)


@pytest.mark.anyio
async def test_update_rejects_unknown_fields_and_ids(temp_session_factory) -> None:
    storage = StorageService(temp_session_factory)
    entry = await storage.create_entry(day=date(2024, 7, 8), mood="sad")

    with pytest.raises(ValueError):
        await storage.update_entry(entry.id, {"id": 99})
    with pytest.raises(EntryNotFoundError):
        await storage.update_entry(entry.id + 100, {"mood": "calm"})


@pytest.mark.anyio
async def test_list_entries_filters_and_order(temp_session_factory) -> None:
    storage = StorageService(temp_session_factory)
    await storage.create_entry(day=date(2024, 7, 1), mood="sad", city="London")
    await storage.create_entry(day=date(2024, 7, 3), mood="happy", city="Toronto")
    await storage.create_entry(day=date(2024, 7, 5), mood="happy", city="London")
    await storage.create_entry(day=date(2024, 7, 7), mood="calm", city="London")

    everything = await storage.list_entries()
    assert [entry.day.day for entry in everything] == [7, 5, 3, 1]

    window = await storage.list_entries(start=date(2024, 7, 3), end=date(2024, 7, 5))
    assert [entry.day.day for entry in window] == [5, 3]

    happy_london = await storage.list_entries(mood="happy", city="London")
    assert [entry.day.day for entry in happy_london] == [5]

    latest = await storage.list_entries(limit=2)
    assert len(latest) == 2

    between = await storage.fetch_entries_between(date(2024, 7, 1), date(2024, 7, 7))
    assert [entry.day.day for entry in between] == [1, 3, 5]


@pytest.mark.anyio
async def test_weekly_summary_upsert_and_settings(temp_session_factory) -> None:
    storage = StorageService(temp_session_factory)
    week = date(2024, 7, 7)
    common = {
        "week_start": week,
        "range_label": "2024-07-07_weekly",
        "top_mood": "calm",
        "avg_score": 0.5,
        "grade": "B",
        "trend": "stable",
        "positive_tags": ["walk"],
        "negative_tags": [],
        "best_day": "Sunday",
        "worst_day": "Monday",
    }

    await storage.save_weekly_summary(
        entries_count=2, computed_at=datetime(2024, 7, 9, 8, 0), **common
    )
    saved = await storage.save_weekly_summary(
        entries_count=4, computed_at=datetime(2024, 7, 10, 8, 0), **common
    )

    assert saved.entries_count == 4
    rows = await storage.list_weekly_summaries()
    assert len(rows) == 1
    fetched = await storage.get_weekly_summary(week)
    assert fetched is not None
    assert json.loads(fetched.positive_tags) == ["walk"]

    await storage.set_setting("theme", "dark")
    assert await storage.get_setting("theme") == "dark"
    assert await storage.get_setting("schema_version") == "test"
    await storage.healthcheck()


@pytest.mark.anyio
async def test_init_db_records_running_version(tmp_path: Path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'versions.db'}"
    engine = create_engine(database_url)
    session_factory = create_session_factory(engine)
    storage = StorageService(session_factory)
    try:
        await init_db(engine, session_factory, "1.0.0", database_url)
        assert await storage.get_setting(SCHEMA_VERSION_KEY) == "1.0.0"

        await init_db(engine, session_factory, "1.1.0", database_url)
        assert await storage.get_setting(SCHEMA_VERSION_KEY) == "1.1.0"
    finally:
        await engine.dispose()
