from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Trend = Literal["improved", "worsened", "stable"]
Grade = Literal["A", "B", "C", "D", "F"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportPeriod(_CamelModel):
    start: dt.date
    end: dt.date
    total_entries: int = Field(ge=0)


class MoodScore(_CamelModel):
    current: float
    previous: float | None = None
    trend: Trend
    trend_value: float
    grade: Grade


class DayScore(_CamelModel):
    day: int = Field(ge=0, le=6)
    day_name: str
    score: float
    entry_count: int = Field(ge=1)


class DayPatterns(_CamelModel):
    best_day: DayScore | None = None
    worst_day: DayScore | None = None


class TagContribution(_CamelModel):
    activity: str
    score: float
    occurrences: int = Field(ge=2)


class Correlations(_CamelModel):
    positive_activities: list[TagContribution] = Field(default_factory=list)
    negative_activities: list[TagContribution] = Field(default_factory=list)


class WeeklyReport(_CamelModel):
    period: ReportPeriod
    mood_score: MoodScore | None = None
    mood_distribution: dict[str, int] = Field(default_factory=dict)
    day_patterns: DayPatterns | None = None
    correlations: Correlations = Field(default_factory=Correlations)
    tips: list[str] = Field(default_factory=list)


class RangeScore(_CamelModel):
    average: float
    grade: Grade


class RangeReport(_CamelModel):
    period: ReportPeriod
    mood_score: RangeScore | None = None
    correlations: Correlations = Field(default_factory=Correlations)


__all__ = [
    "Correlations",
    "DayPatterns",
    "DayScore",
    "Grade",
    "MoodScore",
    "RangeReport",
    "RangeScore",
    "ReportPeriod",
    "TagContribution",
    "Trend",
    "WeeklyReport",
]
