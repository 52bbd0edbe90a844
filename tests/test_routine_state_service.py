import asyncio

import pytest

from habit_tracker.core.errors import InvalidTransitionError, NotFoundError
from habit_tracker.services.habit_state_service import HabitState
from habit_tracker.services.routine_state_service import RoutineState
from habit_tracker.services.session_service import HABIT, ROUTINE

DAY = "2026-03-04"


def _routine_with_habits(tracker, count=2, **habit_fields):
    ids = []
    for index in range(count):
        habit = asyncio.run(tracker.store.add_habit({"name": f"Step {index + 1}", "routine_id": 1, **habit_fields}))
        ids.append(habit.id)
    return ids


def test_start_opens_the_first_habit(tracker):
    h1, h2 = _routine_with_habits(tracker)

    status = asyncio.run(tracker.routines.start(1, DAY))

    assert status.state is RoutineState.IN_PROGRESS
    assert status.current_habit_id == h1
    assert status.habits[0].state is HabitState.IN_PROGRESS
    assert status.habits[1].state is HabitState.NOT_STARTED


def test_completing_every_habit_auto_completes_the_routine(tracker, clock):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.routines.start(1, DAY))
    routine_start = clock()

    clock.advance(seconds=60)
    status = asyncio.run(tracker.routines.complete_current(1, DAY))
    assert status.current_habit_id == h2

    clock.advance(seconds=30)
    status = asyncio.run(tracker.routines.complete_current(1, DAY))

    assert status.state is RoutineState.COMPLETED
    completion = status.completion
    assert completion.completed is True
    assert set(completion.habit_times) == {h1, h2}
    assert completion.habit_times[h1].duration == 60000
    assert completion.habit_times[h2].duration == 30000
    assert completion.total_duration == int((clock() - routine_start).total_seconds() * 1000)

    routine = asyncio.run(tracker.store.get_routine(1))
    assert routine.completion_count == 1
    assert routine.total_duration_sum == 90000
    assert tracker.sessions.sessions() == []


def test_manual_end_records_only_completed_habits(tracker, clock):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.routines.start(1, DAY))
    clock.advance(seconds=45)
    asyncio.run(tracker.routines.complete_current(1, DAY))

    completion = asyncio.run(tracker.routines.end(1, DAY))

    assert completion.completed is True
    assert set(completion.habit_times) == {h1}
    assert tracker.sessions.get("user-1", HABIT, h2, DAY) is None
    assert tracker.sessions.get("user-1", ROUTINE, 1, DAY) is None


def test_end_requires_a_started_run(tracker):
    _routine_with_habits(tracker)
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.routines.end(1, DAY))


def test_completed_routine_cannot_be_completed_again(tracker):
    _routine_with_habits(tracker, count=1)
    asyncio.run(tracker.routines.start(1, DAY))
    asyncio.run(tracker.routines.complete_current(1, DAY))

    status = asyncio.run(tracker.routines.start(1, DAY))
    assert status.state is RoutineState.COMPLETED
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.routines.end(1, DAY))
    assert asyncio.run(tracker.store.get_routine(1)).completion_count == 1


def test_excusing_the_last_open_habit_completes_the_routine(tracker, clock):
    h1, h2 = _routine_with_habits(tracker, excusable=True)
    asyncio.run(tracker.routines.start(1, DAY))
    clock.advance(seconds=20)
    asyncio.run(tracker.routines.complete_current(1, DAY))

    status = asyncio.run(tracker.routines.excuse_current(1, "Weather", DAY))

    assert status.state is RoutineState.COMPLETED
    assert set(status.completion.habit_times) == {h1, h2}
    assert status.completion.habit_times[h1].duration == 20000
    assert status.completion.habit_times[h2].duration == 0


def test_skip_moves_on_without_writing(tracker, document_store):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.routines.start(1, DAY))
    writes_before = document_store.write_count

    status = asyncio.run(tracker.routines.skip(1, DAY))

    assert status.current_habit_id == h2
    assert status.habits[0].state is HabitState.NOT_STARTED
    assert status.habits[1].state is HabitState.IN_PROGRESS
    assert document_store.write_count == writes_before


def test_navigation_is_clamped_to_the_habit_list(tracker):
    h1, h2, h3 = _routine_with_habits(tracker, count=3)
    asyncio.run(tracker.routines.start(1, DAY))

    assert asyncio.run(tracker.routines.move(1, -1, DAY)).current_habit_id == h1
    assert asyncio.run(tracker.routines.move(1, 5, DAY)).current_habit_id == h3
    assert asyncio.run(tracker.routines.select(1, h2, DAY)).current_habit_id == h2
    with pytest.raises(NotFoundError):
        asyncio.run(tracker.routines.select(1, 999, DAY))


def test_start_resumes_at_first_open_habit(tracker, clock):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.habits.start(h1, DAY))
    clock.advance(seconds=10)
    asyncio.run(tracker.habits.complete(h1, DAY))

    status = asyncio.run(tracker.routines.start(1, DAY))

    assert status.current_habit_id == h2


def test_actions_require_a_started_run(tracker):
    _routine_with_habits(tracker)
    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.routines.complete_current(1, DAY))


def test_status_survives_removal_of_the_current_habit(tracker):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.routines.start(1, DAY))
    asyncio.run(tracker.routines.select(1, h2, DAY))

    asyncio.run(tracker.store.delete_habit(h2))
    status = asyncio.run(tracker.routines.status(1, DAY))

    assert status.state is RoutineState.IN_PROGRESS
    assert status.cursor == 0
    assert status.current_habit_id == h1
    assert asyncio.run(tracker.routines.start(1, DAY)).current_habit_id == h1


def test_completing_a_settled_habit_leaves_no_timer_behind(tracker, clock):
    h1, h2 = _routine_with_habits(tracker)
    asyncio.run(tracker.routines.start(1, DAY))
    clock.advance(seconds=15)
    asyncio.run(tracker.routines.complete_current(1, DAY))
    asyncio.run(tracker.routines.select(1, h1, DAY))

    with pytest.raises(InvalidTransitionError):
        asyncio.run(tracker.routines.complete_current(1, DAY))
    assert tracker.sessions.get("user-1", HABIT, h1, DAY) is None
