"""Routine runs: an ordered walk over member habits plus an enclosing timer."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from habit_tracker.core.errors import HabitTrackerError, InvalidTransitionError, NotFoundError
from habit_tracker.models import DailyRecord, HabitTime, Routine, RoutineCompletion, elapsed_ms
from habit_tracker.services.aggregate_service import apply_completion
from habit_tracker.services.date_service import date_key, today_key
from habit_tracker.services.habit_state_service import HabitStateMachine, HabitStatus, completion_state
from habit_tracker.services.session_service import HABIT, ROUTINE, InProgressSession

logger = logging.getLogger(__name__)


class RoutineState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class RoutineStatus:
    routine_id: int
    date: str
    state: RoutineState
    started_at: Optional[datetime.datetime] = None
    cursor: int = 0
    current_habit_id: Optional[int] = None
    habits: List[HabitStatus] = field(default_factory=list)
    completion: Optional[RoutineCompletion] = None


def build_habit_times(routine: Routine, record: Optional[DailyRecord]) -> Dict[int, HabitTime]:
    """Per-habit timing taken from persisted entries; habits without an entry are omitted.

    Excused habits are listed with duration 0.
    """
    habit_times: Dict[int, HabitTime] = {}
    if record is None:
        return habit_times
    for habit_id in routine.habits:
        completion = record.habit_completions.get(habit_id)
        if completion is None:
            continue
        habit_times[habit_id] = HabitTime(
            start_time=completion.start_time,
            end_time=completion.end_time,
            duration=completion.duration or 0,
        )
    return habit_times


class RoutineRunner:
    def __init__(self, habit_machine: HabitStateMachine):
        self.habit_machine = habit_machine
        self.store = habit_machine.store
        self.sessions = habit_machine.sessions

    def _date(self, date: Any) -> str:
        return date_key(date) if date is not None else today_key(self.store.clock)

    def _run(self, routine_id: int, day: str) -> Optional[InProgressSession]:
        return self.sessions.get(self.store.current_user_id(), ROUTINE, routine_id, day)

    def _require_run(self, routine_id: int, day: str) -> InProgressSession:
        run = self._run(routine_id, day)
        if run is None:
            raise InvalidTransitionError("Routine has not been started")
        return run

    @staticmethod
    def _is_settled(record: Optional[DailyRecord], habit_id: int) -> bool:
        if record is None:
            return False
        return completion_state(record.habit_completions.get(habit_id)) is not None

    def _first_open_index(self, routine: Routine, record: Optional[DailyRecord], after: int = -1) -> Optional[int]:
        for index in range(after + 1, len(routine.habits)):
            if not self._is_settled(record, routine.habits[index]):
                return index
        return None

    @staticmethod
    def _clamp_cursor(routine: Routine, run: InProgressSession) -> None:
        # 日本語: 実行中に習慣が削除されてもカーソルは範囲内 / English: Cursor stays in range when members are removed mid-run
        run.cursor = max(0, min(run.cursor, len(routine.habits) - 1))

    def _open_habit(self, routine: Routine, run: InProgressSession, record: Optional[DailyRecord]) -> None:
        # 日本語: カーソル位置の習慣が未完了なら計測を開始 / English: Start timing the habit under the cursor if still open
        if not routine.habits:
            return
        self._clamp_cursor(routine, run)
        habit_id = routine.habits[run.cursor]
        if not self._is_settled(record, habit_id):
            self.sessions.start(run.user_id, HABIT, habit_id, run.date)

    async def status(self, routine_id: int, date: Any = None) -> RoutineStatus:
        day = self._date(date)
        routine = await self.store.get_routine(routine_id)
        record = await self.store.load(day)
        return self._describe(routine, day, record)

    def _describe(self, routine: Routine, day: str, record: Optional[DailyRecord]) -> RoutineStatus:
        completion = record.routine_completions.get(routine.id) if record else None
        habit_statuses = [
            self.habit_machine.describe(
                habit_id, day, record.habit_completions.get(habit_id) if record else None
            )
            for habit_id in routine.habits
        ]
        if completion is not None and completion.completed:
            return RoutineStatus(
                routine_id=routine.id,
                date=day,
                state=RoutineState.COMPLETED,
                habits=habit_statuses,
                completion=completion,
            )
        run = self._run(routine.id, day)
        if run is None:
            return RoutineStatus(
                routine_id=routine.id, date=day, state=RoutineState.NOT_STARTED, habits=habit_statuses
            )
        self._clamp_cursor(routine, run)
        current = routine.habits[run.cursor] if routine.habits else None
        return RoutineStatus(
            routine_id=routine.id,
            date=day,
            state=RoutineState.IN_PROGRESS,
            started_at=run.started_at,
            cursor=run.cursor,
            current_habit_id=current,
            habits=habit_statuses,
            completion=completion,
        )

    async def start(self, routine_id: int, date: Any = None) -> RoutineStatus:
        day = self._date(date)
        routine = await self.store.get_routine(routine_id)
        record = await self.store.load(day)
        status = self._describe(routine, day, record)
        if status.state is RoutineState.COMPLETED:
            return status
        run = self.sessions.start(self.store.current_user_id(), ROUTINE, routine_id, day)
        if status.state is RoutineState.NOT_STARTED:
            run.cursor = self._first_open_index(routine, record) or 0
        self._open_habit(routine, run, record)
        return self._describe(routine, day, record)

    async def _current(self, routine_id: int, day: str):
        routine = await self.store.get_routine(routine_id)
        run = self._require_run(routine_id, day)
        if not routine.habits:
            raise InvalidTransitionError("Routine has no habits")
        self._clamp_cursor(routine, run)
        return routine, run, routine.habits[run.cursor]

    async def complete_current(self, routine_id: int, date: Any = None, notes: str = "") -> RoutineStatus:
        day = self._date(date)
        routine, run, habit_id = await self._current(routine_id, day)
        if self._is_settled(await self.store.load(day), habit_id):
            raise InvalidTransitionError("Habit already has an entry for this date")
        # 日本語: 開始時刻がなければ今を開始時刻とする (所要時間 0) / English: Without a start time the habit starts now (zero duration)
        self.sessions.start(run.user_id, HABIT, habit_id, day)
        await self.habit_machine.complete(habit_id, day, notes=notes)
        return await self._advance(routine, run)

    async def excuse_current(self, routine_id: int, reason: Optional[str], date: Any = None) -> RoutineStatus:
        day = self._date(date)
        routine, run, habit_id = await self._current(routine_id, day)
        await self.habit_machine.excuse(habit_id, reason, day)
        return await self._advance(routine, run)

    async def skip(self, routine_id: int, date: Any = None) -> RoutineStatus:
        """Drop the current habit's start time and move on without writing anything."""
        day = self._date(date)
        routine, run, habit_id = await self._current(routine_id, day)
        self.sessions.clear(run.user_id, HABIT, habit_id, day)
        record = await self.store.load(day)
        if run.cursor < len(routine.habits) - 1:
            run.cursor += 1
            self._open_habit(routine, run, record)
        return self._describe(routine, day, record)

    async def move(self, routine_id: int, step: int, date: Any = None) -> RoutineStatus:
        day = self._date(date)
        routine, run, _ = await self._current(routine_id, day)
        run.cursor = max(0, min(run.cursor + step, len(routine.habits) - 1))
        record = await self.store.load(day)
        self._open_habit(routine, run, record)
        return self._describe(routine, day, record)

    async def select(self, routine_id: int, habit_id: int, date: Any = None) -> RoutineStatus:
        day = self._date(date)
        routine, run, _ = await self._current(routine_id, day)
        if habit_id not in routine.habits:
            raise NotFoundError("Habit is not part of this routine")
        run.cursor = routine.habits.index(habit_id)
        record = await self.store.load(day)
        self._open_habit(routine, run, record)
        return self._describe(routine, day, record)

    async def end(self, routine_id: int, date: Any = None) -> RoutineCompletion:
        """Manually end the run; succeeds however many member habits are done."""
        day = self._date(date)
        routine = await self.store.get_routine(routine_id)
        run = self._require_run(routine_id, day)
        record = await self.store.load(day)
        return await self._finish(routine, run, record)

    async def _advance(self, routine: Routine, run: InProgressSession) -> RoutineStatus:
        record = await self.store.load(run.date)
        next_index = self._first_open_index(routine, record, after=run.cursor)
        if next_index is None:
            await self._finish(routine, run, record)
            record = await self.store.load(run.date)
            return self._describe(routine, run.date, record)
        run.cursor = next_index
        self._open_habit(routine, run, record)
        return self._describe(routine, run.date, record)

    async def _finish(
        self, routine: Routine, run: InProgressSession, record: Optional[DailyRecord]
    ) -> RoutineCompletion:
        existing = record.routine_completions.get(routine.id) if record else None
        if existing is not None and existing.completed:
            raise InvalidTransitionError("Routine is already completed for this date")

        end_time = self.store.clock()
        total_duration = elapsed_ms(run.started_at, end_time)
        completion = RoutineCompletion(
            completed=True,
            completed_at=end_time,
            total_duration=total_duration,
            start_time=run.started_at,
            end_time=end_time,
            habit_times=build_habit_times(routine, record),
        )
        await self.store.merge(run.date, "routineCompletions", {routine.id: completion})

        # 日本語: 遷移時にルーチンと所属習慣のタイマーを必ず止める / English: Stop the routine timer and every member timer on transition
        self.sessions.clear(run.user_id, ROUTINE, routine.id, run.date)
        for habit_id in routine.habits:
            self.sessions.clear(run.user_id, HABIT, habit_id, run.date)

        try:
            await self.store.transform_routine(routine.id, lambda item: apply_completion(item, total_duration))
        except HabitTrackerError:
            logger.error(
                "Routine %s completion on %s was saved but its aggregate update failed", routine.id, run.date
            )
            raise
        logger.info("Routine %s completed on %s in %s ms", routine.id, run.date, total_duration)
        return completion


__all__ = ["RoutineState", "RoutineStatus", "RoutineRunner", "build_habit_times"]
