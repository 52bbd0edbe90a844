import asyncio
import datetime

import pytest

from habit_tracker.models import DailyRecord, Habit, HabitCompletion, HabitTime, Routine, RoutineCompletion
from habit_tracker.services.view_service import (
    daily_progress,
    format_duration,
    habit_duration_stats,
    monthly_rollup,
    routine_composition,
    routine_report,
    weekly_rollup,
)


def _record(**completions):
    return DailyRecord(habit_completions={int(key[1:]): value for key, value in completions.items()})


def test_daily_progress_counts_excused_toward_total_only():
    habits = [Habit(id=1), Habit(id=2), Habit(id=3)]
    record = _record(h1=HabitCompletion(completed=True, duration=0), h2=HabitCompletion(excused=True, excuse_reason="Travel"))

    progress = daily_progress(record, habits)

    assert (progress.completed, progress.total, progress.percentage) == (1, 3, 33)


def test_daily_progress_without_habits_is_zero_percent():
    progress = daily_progress(None, [])
    assert (progress.completed, progress.total, progress.percentage) == (0, 0, 0)


def test_percentage_rounds_half_up():
    habits = [Habit(id=index) for index in range(1, 9)]
    record = _record(h1=HabitCompletion(completed=True, duration=0))

    # 1/8 = 12.5%
    assert daily_progress(record, habits).percentage == 13


def test_routine_composition_uses_routine_order_and_rounded_seconds():
    routine = Routine(id=1, habits=[2, 1])
    habits = [Habit(id=1, name="Coffee"), Habit(id=2, name="Stretch")]
    completion = RoutineCompletion(
        completed=True,
        habit_times={1: HabitTime(duration=29600), 2: HabitTime(duration=90400)},
    )

    composition = routine_composition(routine, completion, habits)

    assert [segment.name for segment in composition.segments] == ["Stretch", "Coffee"]
    assert [segment.duration_seconds for segment in composition.segments] == [90, 30]
    assert composition.total_seconds == 120
    assert composition.segments[0].percentage == pytest.approx(75.0)


def test_routine_composition_is_empty_until_completed():
    composition = routine_composition(Routine(id=1, habits=[1]), None, [Habit(id=1)])
    assert composition.segments == []
    assert composition.total_seconds == 0


def test_weekly_rollup_covers_seven_days_and_perfect_days():
    records = {
        "2026-03-02": _record(h1=HabitCompletion(completed=True, duration=0), h2=HabitCompletion(completed=True, duration=0)),
        "2026-03-03": _record(h1=HabitCompletion(completed=True, duration=0), h2=HabitCompletion(excused=True, excuse_reason="Travel")),
        "2026-02-20": _record(h1=HabitCompletion(completed=True, duration=0)),
    }

    week = weekly_rollup(records, "2026-03-04")

    assert week.start == "2026-02-26"
    assert week.end == "2026-03-04"
    assert len(week.days) == 7
    assert (week.completed, week.total) == (3, 4)
    assert week.percentage == 75
    assert week.perfect_days == 1


def test_monthly_rollup_normalizes_month_overflow():
    month = monthly_rollup({}, 2026, 13)

    assert month.start == "2027-01-01"
    assert month.end == "2027-01-31"
    assert month.percentage == 0


def test_monthly_rollup_handles_leap_february():
    month = monthly_rollup({}, 2028, 2)
    assert len(month.days) == 29


def test_habit_stats_and_routine_report_order_by_mean():
    slow = Habit(id=1, name="Journal", completion_count=2, total_duration_sum=240000)
    fast = Habit(id=2, name="Water", completion_count=1, total_duration_sum=5000)
    routine = Routine(id=1, habits=[2, 1])
    records = [
        _record(h1=HabitCompletion(completed=True, duration=100000)),
        _record(h1=HabitCompletion(completed=True, duration=140000), h2=HabitCompletion(completed=True, duration=5000)),
    ]

    stats = habit_duration_stats(slow, records)
    assert (stats.mean_seconds, stats.min_seconds, stats.max_seconds) == (120, 100, 140)

    report = routine_report(routine, [slow, fast], records)
    assert [item.habit_id for item in report] == [1, 2]


def test_format_duration():
    assert format_duration(None) == "--:--"
    assert format_duration(0) == "0:00"
    assert format_duration(125) == "2:05"


def test_tracker_views_read_the_stored_document(tracker, clock):
    habit = asyncio.run(tracker.store.add_habit({"name": "Stretch"}))
    asyncio.run(tracker.store.add_habit({"name": "Read"}))
    asyncio.run(tracker.habits.start(habit.id))
    clock.advance(minutes=3)
    asyncio.run(tracker.habits.complete(habit.id))

    progress = asyncio.run(tracker.daily_progress())
    assert (progress.completed, progress.total, progress.percentage) == (1, 2, 50)

    week = asyncio.run(tracker.weekly_rollup())
    assert week.end == clock().date().isoformat()
    assert week.completed == 1

    stats = asyncio.run(tracker.habit_stats(habit.id))
    assert stats.mean_seconds == 180

    month = asyncio.run(tracker.monthly_rollup(2026, 3))
    assert month.days[3].date == datetime.date(2026, 3, 4).isoformat()
    assert month.days[3].completed == 1
