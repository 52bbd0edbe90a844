"""Completion state machine for a single habit on a given date.

    NOT_STARTED -> IN_PROGRESS -> COMPLETED | EXCUSED
    COMPLETED -(restart)-> IN_PROGRESS

``Complete`` writes the daily record first and the habit aggregate second.
If the second write fails the completion stays persisted without its
aggregate contribution; that window is logged, not rolled back.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from habit_tracker.core.config import EXCUSE_REASONS
from habit_tracker.core.errors import (
    HabitTrackerError,
    InvalidTransitionError,
    MissingExcuseReasonError,
    NotExcusableError,
    PreconditionError,
)
from habit_tracker.models import DailyRecord, HabitCompletion
from habit_tracker.services.aggregate_service import apply_completion, reverse_completion
from habit_tracker.services.date_service import date_key, today_key
from habit_tracker.services.session_service import HABIT, InProgressSession, SessionRegistry
from habit_tracker.services.store_service import HabitDataStore

logger = logging.getLogger(__name__)


class HabitState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXCUSED = "excused"


@dataclass
class HabitStatus:
    habit_id: int
    date: str
    state: HabitState
    started_at: Optional[datetime.datetime] = None
    elapsed_seconds: int = 0
    completion: Optional[HabitCompletion] = None


def completion_state(completion: Optional[HabitCompletion]) -> Optional[HabitState]:
    if completion is None:
        return None
    if completion.completed:
        return HabitState.COMPLETED
    if completion.excused:
        return HabitState.EXCUSED
    return None


class HabitStateMachine:
    def __init__(self, store: HabitDataStore, sessions: SessionRegistry):
        self.store = store
        self.sessions = sessions

    def _date(self, date: Any) -> str:
        return date_key(date) if date is not None else today_key(self.store.clock)

    def _session(self, habit_id: int, date: str) -> Optional[InProgressSession]:
        return self.sessions.get(self.store.current_user_id(), HABIT, habit_id, date)

    async def _completion(self, habit_id: int, date: str) -> Optional[HabitCompletion]:
        record: Optional[DailyRecord] = await self.store.load(date)
        if record is None:
            return None
        return record.habit_completions.get(habit_id)

    def describe(self, habit_id: int, date: str, completion: Optional[HabitCompletion]) -> HabitStatus:
        state = completion_state(completion)
        if state is not None:
            return HabitStatus(habit_id=habit_id, date=date, state=state, completion=completion)
        session = self._session(habit_id, date)
        if session is None:
            return HabitStatus(habit_id=habit_id, date=date, state=HabitState.NOT_STARTED, completion=completion)
        return HabitStatus(
            habit_id=habit_id,
            date=date,
            state=HabitState.IN_PROGRESS,
            started_at=session.started_at,
            elapsed_seconds=self.sessions.elapsed_seconds(session),
            completion=completion,
        )

    async def status(self, habit_id: int, date: Any = None) -> HabitStatus:
        day = self._date(date)
        await self.store.get_habit(habit_id)
        return self.describe(habit_id, day, await self._completion(habit_id, day))

    async def start(self, habit_id: int, date: Any = None) -> HabitStatus:
        """Capture the start time unless the habit is already completed or excused."""
        day = self._date(date)
        await self.store.get_habit(habit_id)
        completion = await self._completion(habit_id, day)
        if completion_state(completion) is None:
            self.sessions.start(self.store.current_user_id(), HABIT, habit_id, day)
        return self.describe(habit_id, day, completion)

    async def complete(self, habit_id: int, date: Any = None, notes: str = "") -> HabitCompletion:
        day = self._date(date)
        session = self._session(habit_id, day)
        if session is None:
            raise InvalidTransitionError("Cannot complete a habit that has not been started")
        existing = completion_state(await self._completion(habit_id, day))
        if existing is not None:
            raise InvalidTransitionError(f"Habit is already {existing.value}")

        completion = HabitCompletion.finished(session.started_at, self.store.clock(), notes=notes)
        await self.store.merge(day, "habitCompletions", {habit_id: completion})
        self.sessions.clear(self.store.current_user_id(), HABIT, habit_id, day)

        try:
            await self.store.transform_habit(habit_id, lambda habit: apply_completion(habit, completion.duration))
        except HabitTrackerError:
            logger.error(
                "Habit %s completion on %s was saved but its aggregate update failed", habit_id, day
            )
            raise
        return completion

    async def excuse(self, habit_id: int, reason: Optional[str], date: Any = None) -> HabitCompletion:
        if not reason:
            raise MissingExcuseReasonError()
        if reason not in EXCUSE_REASONS:
            raise PreconditionError(f"Unknown excuse reason: {reason}")
        day = self._date(date)
        habit = await self.store.get_habit(habit_id)
        if not habit.excusable:
            raise NotExcusableError(f"{habit.name or 'Habit'} cannot be excused")
        if await self._completion(habit_id, day) is not None:
            raise InvalidTransitionError("Habit already has an entry for this date")

        completion = HabitCompletion.excusal(reason)
        await self.store.merge(day, "habitCompletions", {habit_id: completion})
        self.sessions.clear(self.store.current_user_id(), HABIT, habit_id, day)
        return completion

    async def restart(self, habit_id: int, date: Any = None) -> HabitStatus:
        day = self._date(date)
        completion = await self._completion(habit_id, day)
        if completion_state(completion) is not HabitState.COMPLETED:
            raise InvalidTransitionError("Only a completed habit can be restarted")

        duration = completion.duration or 0
        await self.store.discard_habit_completion(day, habit_id)
        try:
            await self.store.transform_habit(habit_id, lambda habit: reverse_completion(habit, duration))
        except HabitTrackerError:
            logger.error("Habit %s completion on %s was removed but its aggregate was not reversed", habit_id, day)
            raise
        self.sessions.restart(self.store.current_user_id(), HABIT, habit_id, day)
        return self.describe(habit_id, day, None)

    def cancel(self, habit_id: int, date: Any = None) -> bool:
        """Back out of an in-progress habit; nothing is written."""
        day = self._date(date)
        return self.sessions.clear(self.store.current_user_id(), HABIT, habit_id, day) is not None


__all__ = ["HabitState", "HabitStatus", "HabitStateMachine", "completion_state"]
