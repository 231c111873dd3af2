from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from ..metrics import WEEKLY_REPORTS
from ..schemas.insights import (
    Correlations,
    DayPatterns,
    DayScore,
    MoodScore,
    RangeReport,
    RangeScore,
    ReportPeriod,
    TagContribution,
    WeeklyReport,
)
from ..services.storage import StorageService
from ..utils.tags import decode_tags

logger = logging.getLogger(__name__)

MOOD_SCORES = {
    "happy": 2,
    "calm": 1,
    "neutral": 0,
    "sad": -1,
    "stressed": -2,
}
DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
TREND_THRESHOLD = 0.3
CORRELATION_THRESHOLD = 0.5
MIN_TAG_OCCURRENCES = 2
MAX_ACTIVITIES = 3
MIN_TIPS = 2

EMPTY_TIP = "Start tracking your moods to see insights here."
FALLBACK_TIP = "Regular mood tracking can help you identify patterns over time."


class InvalidDateError(ValueError):
    """Raised when a report boundary cannot be parsed as a calendar date."""


def coerce_date(value: object) -> date:
    """Accept ``date``/``datetime`` values or ISO strings and return the calendar day."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError as exc:
            raise InvalidDateError(f"invalid date: {value!r}") from exc
    raise InvalidDateError(f"invalid date: {value!r}")


def mood_score(mood: str | None) -> int:
    return MOOD_SCORES.get((mood or "").lower(), 0)


def score_to_grade(score: float) -> str:
    if score >= 1.5:
        return "A"
    if score >= 0.5:
        return "B"
    if score >= -0.5:
        return "C"
    if score >= -1.5:
        return "D"
    return "F"


def classify_trend(current: float, previous: float | None) -> tuple[str, float]:
    """Return the trend label and the rounded delta against the previous week."""

    if previous is None:
        return "stable", 0.0
    delta = round(current - previous, 2)
    if delta > TREND_THRESHOLD:
        return "improved", delta
    if delta < -TREND_THRESHOLD:
        return "worsened", delta
    return "stable", delta


def day_index(day: date) -> int:
    """Day of week with Sunday as 0."""

    return (day.weekday() + 1) % 7


class MoodInsightsEngine:
    """Aggregate raw mood entries into weekly and arbitrary-range reports."""

    def __init__(
        self,
        storage: StorageService,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._storage = storage
        self._clock = clock or datetime.now

    async def current_week_report(self) -> WeeklyReport:
        today = self._clock().date()
        return await self.compute_weekly_report(today - timedelta(days=day_index(today)))

    async def compute_weekly_report(self, start: object) -> WeeklyReport:
        week_start = coerce_date(start)
        week_end = week_start + timedelta(days=7)

        entries = await self._load(week_start, week_end)
        if not entries:
            logger.debug(
                "No entries for weekly report",
                extra={"extra_fields": {"week_start": week_start.isoformat()}},
            )
            WEEKLY_REPORTS.labels(result="empty").inc()
            return WeeklyReport(
                period=ReportPeriod(start=week_start, end=week_end, total_entries=0),
                tips=[EMPTY_TIP],
            )

        previous_entries = await self._load(week_start - timedelta(days=7), week_start)

        current = round(self._mean_score(entries), 2)
        previous = (
            round(self._mean_score(previous_entries), 2) if previous_entries else None
        )
        trend, trend_value = classify_trend(current, previous)
        grade = score_to_grade(current)

        distribution = Counter(mood for _, mood, _ in entries)
        correlations = self._correlations(entries)
        best_day, worst_day = self._day_patterns(entries)
        tips = self._tips(correlations, trend, current)

        report = WeeklyReport(
            period=ReportPeriod(start=week_start, end=week_end, total_entries=len(entries)),
            mood_score=MoodScore(
                current=current,
                previous=previous,
                trend=trend,
                trend_value=trend_value,
                grade=grade,
            ),
            mood_distribution=dict(distribution),
            day_patterns=DayPatterns(best_day=best_day, worst_day=worst_day),
            correlations=correlations,
            tips=tips,
        )
        WEEKLY_REPORTS.labels(result="computed").inc()
        await self._save_summary(week_start, report, distribution)
        return report

    async def compute_range_report(self, start: object, end: object) -> RangeReport:
        range_start = coerce_date(start)
        range_end = coerce_date(end)
        if range_end <= range_start:
            raise InvalidDateError("end must be after start")

        entries = await self._load(range_start, range_end)
        period = ReportPeriod(start=range_start, end=range_end, total_entries=len(entries))
        if not entries:
            return RangeReport(period=period)
        average = round(self._mean_score(entries), 2)
        return RangeReport(
            period=period,
            mood_score=RangeScore(average=average, grade=score_to_grade(average)),
            correlations=self._correlations(entries),
        )

    async def _load(self, start: date, end: date) -> list[tuple[date, str, list[str]]]:
        """Entries in ``[start, end)`` as ``(day, mood, tags)`` tuples in date order."""

        rows = await self._storage.fetch_entries_between(start, end)
        return self._normalize_entries(rows, start, end)

    @staticmethod
    def _normalize_entries(
        rows: Iterable[Any], start: date, end: date
    ) -> list[tuple[date, str, list[str]]]:
        result: list[tuple[date, str, list[str]]] = []
        for row in rows:
            raw_day = getattr(row, "day", None)
            try:
                day = coerce_date(raw_day)
            except InvalidDateError:
                logger.warning("Skipping entry with unreadable date %r", raw_day)
                continue
            if not start <= day < end:
                continue
            mood = str(getattr(row, "mood", "") or "").lower()
            result.append((day, mood, decode_tags(getattr(row, "tags", None))))
        result.sort(key=lambda item: item[0])
        return result

    @staticmethod
    def _mean_score(entries: Sequence[tuple[date, str, list[str]]]) -> float:
        return sum(mood_score(mood) for _, mood, _ in entries) / len(entries)

    @staticmethod
    def _day_patterns(
        entries: Sequence[tuple[date, str, list[str]]],
    ) -> tuple[DayScore | None, DayScore | None]:
        grouped: dict[int, list[int]] = defaultdict(list)
        for day, mood, _ in entries:
            grouped[day_index(day)].append(mood_score(mood))

        days = [
            DayScore(
                day=index,
                day_name=DAY_NAMES[index],
                score=round(sum(scores) / len(scores), 2),
                entry_count=len(scores),
            )
            for index, scores in sorted(grouped.items())
        ]
        if not days:
            return None, None
        # max/min keep the first of equal scores, so ties go to the earlier weekday
        best = max(days, key=lambda item: item.score)
        worst = min(days, key=lambda item: item.score)
        return best, worst

    @staticmethod
    def _correlations(entries: Sequence[tuple[date, str, list[str]]]) -> Correlations:
        totals: dict[str, list[int]] = {}
        for _, mood, tags in entries:
            for tag in tags:
                totals.setdefault(tag, []).append(mood_score(mood))

        positive: list[TagContribution] = []
        negative: list[TagContribution] = []
        for tag, scores in totals.items():
            if len(scores) < MIN_TAG_OCCURRENCES:
                continue
            average = sum(scores) / len(scores)
            item = TagContribution(
                activity=tag, score=round(average, 2), occurrences=len(scores)
            )
            if average >= CORRELATION_THRESHOLD:
                positive.append(item)
            elif average <= -CORRELATION_THRESHOLD:
                negative.append(item)

        positive.sort(key=lambda item: item.score, reverse=True)
        negative.sort(key=lambda item: item.score)
        return Correlations(
            positive_activities=positive[:MAX_ACTIVITIES],
            negative_activities=negative[:MAX_ACTIVITIES],
        )

    @staticmethod
    def _tips(correlations: Correlations, trend: str, current: float) -> list[str]:
        tips: list[str] = []
        if correlations.positive_activities:
            names = " and ".join(item.activity for item in correlations.positive_activities[:2])
            tips.append(
                f"Your mood seems to improve when you {names}. "
                "Consider doing more of these activities."
            )
        if correlations.negative_activities:
            names = " and ".join(item.activity for item in correlations.negative_activities[:2])
            tips.append(
                f"Your mood tends to be lower when you {names}. "
                "Consider how these activities impact you."
            )

        if trend == "worsened" and current < 0:
            tips.append(
                "Your mood has decreased this week. Consider scheduling activities "
                "you enjoy or reaching out to friends."
            )
        elif trend == "improved" and current > 0:
            tips.append(
                "Great job! Your mood has improved this week. Try to maintain the "
                "positive changes you've made."
            )
        elif trend == "stable" and abs(current) < 0.5:
            tips.append(
                "Your mood has been steady. This is a good time to try new "
                "activities that might boost your well-being."
            )

        if len(tips) < MIN_TIPS:
            tips.append(FALLBACK_TIP)
        return tips

    async def _save_summary(
        self,
        week_start: date,
        report: WeeklyReport,
        distribution: Counter[str],
    ) -> None:
        score = report.mood_score
        patterns = report.day_patterns
        top_mood = distribution.most_common(1)[0][0] if distribution else None
        try:
            await self._storage.save_weekly_summary(
                week_start=week_start,
                range_label=f"{week_start.isoformat()}_weekly",
                entries_count=report.period.total_entries,
                top_mood=top_mood,
                avg_score=score.current if score else None,
                grade=score.grade if score else None,
                trend=score.trend if score else None,
                positive_tags=[
                    item.activity for item in report.correlations.positive_activities
                ],
                negative_tags=[
                    item.activity for item in report.correlations.negative_activities
                ],
                best_day=patterns.best_day.day_name if patterns and patterns.best_day else None,
                worst_day=(
                    patterns.worst_day.day_name if patterns and patterns.worst_day else None
                ),
                computed_at=self._clock(),
            )
        except Exception:
            logger.exception(
                "Failed to store weekly summary",
                extra={"extra_fields": {"week_start": week_start.isoformat()}},
            )


__all__ = [
    "DAY_NAMES",
    "InvalidDateError",
    "MOOD_SCORES",
    "MoodInsightsEngine",
    "classify_trend",
    "coerce_date",
    "day_index",
    "mood_score",
    "score_to_grade",
]
