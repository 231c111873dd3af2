from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from backend.app.db import MoodEntry, SettingEntry, WeeklySummary


@pytest.mark.anyio
async def test_mood_entry_defaults(temp_session_factory):
    session_factory = temp_session_factory

    async with session_factory() as session:
        entry = MoodEntry(day=date(2024, 7, 8), mood="calm", city="Toronto")
        session.add(entry)
        await session.commit()
        await session.refresh(entry)

        assert entry.id > 0
        assert entry.tags == "[]"
        assert entry.created_at is not None
        assert entry.updated_at is not None

    async with session_factory() as session:
        rows = (await session.execute(select(MoodEntry))).scalars().all()
        assert [row.city for row in rows] == ["Toronto"]


@pytest.mark.anyio
async def test_mood_entry_day_is_unique(temp_session_factory):
    session_factory = temp_session_factory

    async with session_factory() as session:
        session.add(MoodEntry(day=date(2024, 7, 8), mood="calm"))
        await session.commit()

    async with session_factory() as session:
        session.add(MoodEntry(day=date(2024, 7, 8), mood="sad"))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.anyio
async def test_weekly_summary_week_start_is_unique(temp_session_factory):
    session_factory = temp_session_factory
    week = date(2024, 7, 7)

    async with session_factory() as session:
        session.add(WeeklySummary(week_start=week, range_label="2024-07-07_weekly"))
        await session.commit()

    async with session_factory() as session:
        session.add(WeeklySummary(week_start=week, range_label="2024-07-07_weekly"))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.anyio
async def test_setting_entry_unique_key(temp_session_factory):
    session_factory = temp_session_factory

    async with session_factory() as session:
        session.add(SettingEntry(key="theme", value="light"))
        await session.commit()

    async with session_factory() as session:
        query = select(SettingEntry).where(SettingEntry.key == "theme")
        result = await session.execute(query)
        setting = result.scalar_one()
        setting.value = "dark"
        await session.commit()

    async with session_factory() as session:
        query = select(SettingEntry).where(SettingEntry.key == "theme")
        setting = (await session.execute(query)).scalar_one()
        assert setting.value == "dark"
