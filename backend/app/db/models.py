from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base declarative model."""


class MoodEntry(Base):
    """One mood record per calendar day."""

    __tablename__ = "mood_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column(Date, unique=True, nullable=False, index=True)
    mood: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    tags: Mapped[str] = mapped_column(Text, default="[]")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    weather_temp_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    weather_humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    weather_condition: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


class WeeklySummary(Base):
    """Last computed weekly report, kept as a compact cache."""

    __tablename__ = "weekly_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week_start: Mapped[date] = mapped_column(Date, unique=True, nullable=False, index=True)
    range_label: Mapped[str] = mapped_column(String(32), nullable=False)
    entries_count: Mapped[int] = mapped_column(Integer, default=0)
    top_mood: Mapped[str | None] = mapped_column(String(16), nullable=True)
    avg_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    trend: Mapped[str | None] = mapped_column(String(16), nullable=True)
    positive_tags: Mapped[str] = mapped_column(Text, default="[]")
    negative_tags: Mapped[str] = mapped_column(Text, default="[]")
    best_day: Mapped[str | None] = mapped_column(String(16), nullable=True)
    worst_day: Mapped[str | None] = mapped_column(String(16), nullable=True)
    computed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class SettingEntry(Base):
    """Key-value configuration stored in DB."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


__all__ = [
    "Base",
    "MoodEntry",
    "SettingEntry",
    "WeeklySummary",
]
