import asyncio

import pytest

from habit_tracker.core.errors import (
    InvalidTransitionError,
    MissingExcuseReasonError,
    NotExcusableError,
    PreconditionError,
)
from habit_tracker.services.habit_state_service import HabitState

DAY = "2026-03-04"


def _add_habit(tracker, **fields):
    return asyncio.run(tracker.store.add_habit({"name": "Stretch", **fields}))


def test_start_then_complete_records_duration_and_aggregate(tracker, clock):
    habit = _add_habit(tracker, expected_duration=300000)

    status = asyncio.run(tracker.habits.start(habit.id, DAY))
    assert status.state is HabitState.IN_PROGRESS
    clock.advance(minutes=7)
    completion = asyncio.run(tracker.habits.complete(habit.id, DAY, notes="felt good"))

    assert completion.duration == 420000
    assert completion.notes == "felt good"
    stored = asyncio.run(tracker.store.get_habit(habit.id))
    assert stored.completion_count == 1
    assert stored.total_duration_sum == 420000
    assert asyncio.run(tracker.habits.status(habit.id, DAY)).state is HabitState.COMPLETED
    assert tracker.sessions.sessions() == []


def test_starting_twice_keeps_original_start_time(tracker, clock):
    habit = _add_habit(tracker)
    first = asyncio.run(tracker.habits.start(habit.id, DAY))
    clock.advance(seconds=30)
    second = asyncio.run(tracker.habits.start(habit.id, DAY))

    assert second.started_at == first.started_at
    assert second.elapsed_seconds == 30


def test_complete_without_start_is_rejected(tracker):
    habit = _add_habit(tracker)
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.habits.complete(habit.id, DAY))


def test_restart_round_trip_counts_one_completion(tracker, clock):
    habit = _add_habit(tracker)

    asyncio.run(tracker.habits.start(habit.id, DAY))
    clock.advance(seconds=90)
    asyncio.run(tracker.habits.complete(habit.id, DAY))

    status = asyncio.run(tracker.habits.restart(habit.id, DAY))
    assert status.state is HabitState.IN_PROGRESS
    assert asyncio.run(tracker.store.load(DAY)).habit_completions == {}

    clock.advance(seconds=90)
    asyncio.run(tracker.habits.complete(habit.id, DAY))

    stored = asyncio.run(tracker.store.get_habit(habit.id))
    assert stored.completion_count == 1
    assert stored.total_duration_sum == 90000


def test_restart_requires_a_completed_entry(tracker):
    habit = _add_habit(tracker, excusable=True)
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.habits.restart(habit.id, DAY))

    asyncio.run(tracker.habits.excuse(habit.id, "Weather", DAY))
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.habits.restart(habit.id, DAY))


def test_excuse_records_reason_without_touching_aggregates(tracker):
    habit = _add_habit(tracker, excusable=True)
    asyncio.run(tracker.habits.start(habit.id, DAY))

    completion = asyncio.run(tracker.habits.excuse(habit.id, "Sick Day", DAY))

    assert completion.excused is True
    assert completion.completed is False
    assert completion.excuse_reason == "Sick Day"
    stored = asyncio.run(tracker.store.get_habit(habit.id))
    assert stored.completion_count == 0
    assert asyncio.run(tracker.habits.status(habit.id, DAY)).state is HabitState.EXCUSED
    assert tracker.sessions.sessions() == []


def test_excusing_a_non_excusable_habit_writes_nothing(tracker):
    habit = _add_habit(tracker, excusable=False)

    with pytest.raises(NotExcusableError):
        asyncio.run(tracker.habits.excuse(habit.id, "Travel", DAY))

    assert asyncio.run(tracker.store.load(DAY)) is None
    assert asyncio.run(tracker.store.get_habit(habit.id)).completion_count == 0


def test_excuse_requires_a_known_reason(tracker):
    habit = _add_habit(tracker, excusable=True)
    with pytest.raises(MissingExcuseReasonError):
        asyncio.run(tracker.habits.excuse(habit.id, "", DAY))
    with pytest.raises(PreconditionError):
        asyncio.run(tracker.habits.excuse(habit.id, "Bored", DAY))


def test_completed_habit_cannot_be_excused_or_started(tracker, clock):
    habit = _add_habit(tracker, excusable=True)
    asyncio.run(tracker.habits.start(habit.id, DAY))
    asyncio.run(tracker.habits.complete(habit.id, DAY))

    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.habits.excuse(habit.id, "Travel", DAY))
    status = asyncio.run(tracker.habits.start(habit.id, DAY))
    assert status.state is HabitState.COMPLETED
    assert tracker.sessions.sessions() == []


def test_cancel_drops_session_without_writing(tracker, document_store):
    habit = _add_habit(tracker)
    asyncio.run(tracker.habits.start(habit.id, DAY))
    writes_before = document_store.write_count

    assert tracker.habits.cancel(habit.id, DAY) is True
    assert tracker.habits.cancel(habit.id, DAY) is False
    assert document_store.write_count == writes_before
    assert asyncio.run(tracker.habits.status(habit.id, DAY)).state is HabitState.NOT_STARTED


def test_sessions_are_scoped_per_date(tracker):
    habit = _add_habit(tracker)
    asyncio.run(tracker.habits.start(habit.id, DAY))

    assert asyncio.run(tracker.habits.status(habit.id, "2026-03-05")).state is HabitState.NOT_STARTED
