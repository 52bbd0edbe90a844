"""Habit tracker client object wiring the collaborators together."""

from __future__ import annotations

import asyncio
import datetime
from typing import Any, Dict, List, Optional

from habit_tracker.core.errors import NotFoundError
from habit_tracker.models import DailyChallenge, DailyRecord, Todo
from habit_tracker.services.challenge_service import ChallengeSource, StaticChallengeSource, load_daily_challenge
from habit_tracker.services.collaborators import ConnectivityProbe, DocumentStore, IdentityProvider
from habit_tracker.services.date_service import Clock, date_key, today_key
from habit_tracker.services.habit_state_service import HabitStateMachine
from habit_tracker.services.routine_state_service import RoutineRunner
from habit_tracker.services.session_service import SessionRegistry
from habit_tracker.services.store_service import HabitDataStore
from habit_tracker.services.view_service import (
    DailyProgress,
    HabitDurationStats,
    PeriodRollup,
    RoutineComposition,
    daily_progress,
    habit_duration_stats,
    monthly_rollup,
    routine_composition,
    routine_report,
    weekly_rollup,
)


class HabitTracker:
    """Entry point for one signed-in user's habit tracking.

    Everything the tracker touches is passed in; nothing is module-global.
    ``sessions`` and ``locks`` may be shared between trackers so in-progress
    timers and write serialization survive across requests.
    """

    def __init__(
        self,
        document_store: Optional[DocumentStore],
        identity: IdentityProvider,
        connectivity: ConnectivityProbe,
        clock: Clock = datetime.datetime.now,
        sessions: Optional[SessionRegistry] = None,
        challenges: Optional[ChallengeSource] = None,
        locks: Optional[Dict[str, asyncio.Lock]] = None,
    ):
        self.clock = clock
        self.store = HabitDataStore(document_store, identity, connectivity, clock=clock, locks=locks)
        self.sessions = sessions if sessions is not None else SessionRegistry(clock=clock)
        self.habits = HabitStateMachine(self.store, self.sessions)
        self.routines = RoutineRunner(self.habits)
        self.challenges = challenges if challenges is not None else StaticChallengeSource()

    def _date(self, date: Any) -> str:
        return date_key(date) if date is not None else today_key(self.clock)

    async def daily_progress(self, date: Any = None) -> DailyProgress:
        document = await self.store.get_document()
        record = document.data.daily_data.get(self._date(date))
        return daily_progress(record, document.data.habits)

    async def weekly_rollup(self, end: Any = None) -> PeriodRollup:
        return weekly_rollup(await self.store.daily_records(), self._date(end))

    async def monthly_rollup(self, year: int, month: int) -> PeriodRollup:
        return monthly_rollup(await self.store.daily_records(), year, month)

    async def routine_composition(self, routine_id: int, date: Any = None) -> RoutineComposition:
        document = await self.store.get_document()
        routine = document.data.find_routine(routine_id)
        if routine is None:
            raise NotFoundError("Routine not found")
        record = document.data.daily_data.get(self._date(date))
        completion = record.routine_completions.get(routine_id) if record else None
        return routine_composition(routine, completion, document.data.habits)

    async def habit_stats(self, habit_id: int) -> HabitDurationStats:
        document = await self.store.get_document()
        habit = document.data.find_habit(habit_id)
        if habit is None:
            raise NotFoundError("Habit not found")
        return habit_duration_stats(habit, document.data.daily_data.values())

    async def routine_report(self, routine_id: int) -> List[HabitDurationStats]:
        document = await self.store.get_document()
        routine = document.data.find_routine(routine_id)
        if routine is None:
            raise NotFoundError("Routine not found")
        return routine_report(routine, document.data.habits, document.data.daily_data.values())

    async def update_todos(self, todos: List[Dict[str, Any]], date: Any = None) -> List[Todo]:
        record: DailyRecord = await self.store.merge(self._date(date), "todos", todos)
        return record.todos

    async def check_in_virtues(self, check_ins: Dict[str, bool], date: Any = None) -> Dict[str, bool]:
        record = await self.store.merge(self._date(date), "virtueCheckIns", check_ins)
        return record.virtue_check_ins

    async def daily_challenge(self, virtue: str, date: Any = None) -> Optional[DailyChallenge]:
        return await load_daily_challenge(self.store, self.challenges, virtue, self._date(date))

    def teardown(self) -> None:
        """Cancel every running timer (view torn down / process shutdown)."""
        self.sessions.clear_all()


__all__ = ["HabitTracker"]
