"""Read-only calculators over stored daily records."""

from __future__ import annotations

import calendar
import datetime
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from habit_tracker.models import DailyRecord, Habit, Routine, RoutineCompletion
from habit_tracker.services.aggregate_service import mean_duration
from habit_tracker.services.date_service import date_range, parse_date


@dataclass
class DailyProgress:
    completed: int
    total: int
    percentage: int


@dataclass
class CompositionSegment:
    habit_id: int
    name: str
    duration_seconds: int
    percentage: float


@dataclass
class RoutineComposition:
    routine_id: int
    total_seconds: int = 0
    segments: List[CompositionSegment] = field(default_factory=list)


@dataclass
class DayRollup:
    date: str
    completed: int
    total: int
    percentage: int
    perfect: bool


@dataclass
class PeriodRollup:
    start: str
    end: str
    days: List[DayRollup]
    completed: int
    total: int
    percentage: int
    perfect_days: int


@dataclass
class HabitDurationStats:
    habit_id: int
    name: str
    completion_count: int
    mean_seconds: int
    min_seconds: int
    max_seconds: int


def _percent(part: int, whole: int) -> int:
    # 日本語: 0.5 は切り上げ (Math.round と同じ) / English: Halves round up
    if whole <= 0:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))


def _completed_entries(record: Optional[DailyRecord]) -> int:
    if record is None:
        return 0
    return sum(1 for completion in record.habit_completions.values() if completion.completed)


def daily_progress(record: Optional[DailyRecord], habits: Iterable[Habit]) -> DailyProgress:
    """Progress for one date against every currently defined habit.

    Habits created after the date still count toward ``total``; this is not a
    point-in-time snapshot. Excused entries do not count as completed.
    """
    total = len(list(habits))
    completed = _completed_entries(record)
    return DailyProgress(completed=completed, total=total, percentage=_percent(completed, total))


def routine_composition(
    routine: Routine, completion: Optional[RoutineCompletion], habits: Iterable[Habit]
) -> RoutineComposition:
    """Per-habit share of a completed run for a stacked bar, in routine order."""
    composition = RoutineComposition(routine_id=routine.id)
    if completion is None or not completion.completed:
        return composition

    names = {habit.id: habit.name for habit in habits}
    for habit_id in routine.habits:
        timing = completion.habit_times.get(habit_id)
        seconds = round((timing.duration or 0) / 1000) if timing else 0
        composition.segments.append(
            CompositionSegment(habit_id=habit_id, name=names.get(habit_id, ""), duration_seconds=seconds, percentage=0.0)
        )
    composition.total_seconds = sum(segment.duration_seconds for segment in composition.segments)
    if composition.total_seconds > 0:
        for segment in composition.segments:
            segment.percentage = segment.duration_seconds / composition.total_seconds * 100
    return composition


def _day_rollup(day: datetime.date, record: Optional[DailyRecord]) -> DayRollup:
    # 日本語: 期間集計は記録のある習慣だけを母数にする / English: Range rollups count only habits with an entry that day
    total = len(record.habit_completions) if record else 0
    completed = _completed_entries(record)
    return DayRollup(
        date=day.isoformat(),
        completed=completed,
        total=total,
        percentage=_percent(completed, total),
        perfect=total > 0 and completed == total,
    )


def rollup(records: Mapping[str, DailyRecord], start, end) -> PeriodRollup:
    days = [_day_rollup(day, records.get(day.isoformat())) for day in date_range(start, end)]
    completed = sum(day.completed for day in days)
    total = sum(day.total for day in days)
    return PeriodRollup(
        start=parse_date(start).isoformat(),
        end=parse_date(end).isoformat(),
        days=days,
        completed=completed,
        total=total,
        percentage=_percent(completed, total),
        perfect_days=sum(1 for day in days if day.perfect),
    )


def weekly_rollup(records: Mapping[str, DailyRecord], end) -> PeriodRollup:
    end_date = parse_date(end)
    return rollup(records, end_date - datetime.timedelta(days=6), end_date)


def monthly_rollup(records: Mapping[str, DailyRecord], year: int, month: int) -> PeriodRollup:
    # 日本語: 月の繰り上がり/繰り下がりを補正 / English: Normalize month overflow into the adjacent year
    if month > 12:
        month = 1
        year += 1
    elif month < 1:
        month = 12
        year -= 1
    last_day = calendar.monthrange(year, month)[1]
    return rollup(records, datetime.date(year, month, 1), datetime.date(year, month, last_day))


def habit_duration_stats(habit: Habit, records: Iterable[DailyRecord]) -> HabitDurationStats:
    durations: List[int] = []
    for record in records:
        completion = record.habit_completions.get(habit.id)
        if completion is not None and completion.completed and completion.duration:
            durations.append(round(completion.duration / 1000))
    mean = mean_duration(habit)
    return HabitDurationStats(
        habit_id=habit.id,
        name=habit.name,
        completion_count=habit.completion_count,
        mean_seconds=round(mean / 1000) if mean is not None else 0,
        min_seconds=min(durations) if durations else 0,
        max_seconds=max(durations) if durations else 0,
    )


def routine_report(routine: Routine, habits: Iterable[Habit], records: Iterable[DailyRecord]) -> List[HabitDurationStats]:
    """Duration stats for the routine's habits, longest mean first."""
    records = list(records)
    members: Dict[int, Habit] = {habit.id: habit for habit in habits if habit.id in routine.habits}
    stats = [habit_duration_stats(members[habit_id], records) for habit_id in routine.habits if habit_id in members]
    return sorted(stats, key=lambda item: item.mean_seconds, reverse=True)


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    whole = max(int(seconds), 0)
    return f"{whole // 60}:{whole % 60:02d}"


__all__ = [
    "DailyProgress",
    "CompositionSegment",
    "RoutineComposition",
    "DayRollup",
    "PeriodRollup",
    "HabitDurationStats",
    "daily_progress",
    "routine_composition",
    "rollup",
    "weekly_rollup",
    "monthly_rollup",
    "habit_duration_stats",
    "routine_report",
    "format_duration",
]
