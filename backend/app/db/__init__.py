"""Database models for MoodPeek."""

from .models import Base, MoodEntry, SettingEntry, WeeklySummary

__all__ = [
    "Base",
    "MoodEntry",
    "SettingEntry",
    "WeeklySummary",
]
