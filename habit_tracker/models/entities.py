"""Habit tracker document entities.

Everything a user owns lives in one JSON document:

    {"userInfo": {...}, "data": {"routines": [...], "habits": [...], "goals": [...],
     "todos": [...], "dailyData": {"YYYY-MM-DD": {...}}, "settings": {}, "dashboardOrder": []}}

The models below validate that layout. Python attributes are snake_case; the
stored keys are camelCase (``by_alias=True`` when dumping).
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from habit_tracker.core.config import DEFAULT_EXPECTED_DURATION_MS


class _DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TrackingType(str, Enum):
    SIMPLE = "simple"
    TIMER = "timer"
    DURATION = "duration"


# 日本語: 平均所要時間を導出する集計ペア / English: Aggregate pair from which the mean duration is derived
class _Aggregated(_DocumentModel):
    completion_count: int = Field(default=0, ge=0)
    total_duration_sum: int = Field(default=0, ge=0)


class Habit(_Aggregated):
    id: int = Field(gt=0)
    name: str = ""
    description: str = ""
    routine_id: Optional[int] = None
    tracking_type: TrackingType = TrackingType.SIMPLE
    duration: Optional[int] = None
    expected_duration: Optional[int] = None
    excusable: bool = False
    created_at: Optional[datetime.datetime] = None

    @property
    def effective_expected_duration(self) -> int:
        return self.expected_duration or DEFAULT_EXPECTED_DURATION_MS


class Routine(_Aggregated):
    id: int = Field(gt=0)
    name: str = ""
    time_of_day: Optional[str] = None
    days: List[str] = Field(default_factory=list)
    habits: List[int] = Field(default_factory=list)
    order: int = 0


class Goal(_DocumentModel):
    id: int
    name: str = ""
    description: str = ""
    target_date: Optional[str] = None
    completed: bool = False
    created_at: Optional[datetime.datetime] = None


class Todo(_DocumentModel):
    id: int
    text: str = ""
    completed: bool = False
    created_at: Optional[datetime.datetime] = None


class HabitCompletion(_DocumentModel):
    completed: bool = False
    completed_at: Optional[datetime.datetime] = None
    duration: Optional[int] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    notes: str = ""
    excused: bool = False
    excuse_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "HabitCompletion":
        if self.completed and self.excused:
            raise ValueError("a habit completion cannot be both completed and excused")
        if self.completed != (self.duration is not None):
            raise ValueError("duration is required for completed habits and only for them")
        if self.start_time and self.end_time and self.start_time > self.end_time:
            raise ValueError("startTime must not be later than endTime")
        return self

    @classmethod
    def finished(
        cls, start_time: datetime.datetime, end_time: datetime.datetime, notes: str = ""
    ) -> "HabitCompletion":
        return cls(
            completed=True,
            completed_at=end_time,
            duration=elapsed_ms(start_time, end_time),
            start_time=start_time,
            end_time=end_time,
            notes=notes,
        )

    @classmethod
    def excusal(cls, reason: str) -> "HabitCompletion":
        return cls(completed=False, excused=True, excuse_reason=reason)


class HabitTime(_DocumentModel):
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    duration: int = 0


class RoutineCompletion(_DocumentModel):
    completed: bool = False
    completed_at: Optional[datetime.datetime] = None
    total_duration: Optional[int] = None
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None
    habit_times: Dict[int, HabitTime] = Field(default_factory=dict)


class DailyChallenge(_DocumentModel):
    challenge_id: Optional[str] = None
    virtue: Optional[str] = None
    challenge: Optional[str] = None
    difficulty: Optional[str] = None
    accepted: bool = False
    completed: bool = False
    accepted_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None


# 日本語: 未知のキーは保持して書き戻し時に失わない / English: Unknown keys are kept so write-back never drops them
class DailyRecord(_DocumentModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    habit_completions: Dict[int, HabitCompletion] = Field(default_factory=dict)
    routine_completions: Dict[int, RoutineCompletion] = Field(default_factory=dict)
    todos: List[Todo] = Field(default_factory=list)
    virtue_check_ins: Dict[str, bool] = Field(default_factory=dict)
    daily_challenge: Optional[DailyChallenge] = None


class DashboardOrderItem(_DocumentModel):
    type: Literal["routine", "habit"]
    id: int
    order: int = 0


class UserInfo(_DocumentModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str = ""
    email: str = ""
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    is_admin: bool = False
    created_at: Optional[datetime.datetime] = None
    last_active: Optional[datetime.datetime] = None


class UserData(_DocumentModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    settings: Dict[str, Any] = Field(default_factory=dict)
    routines: List[Routine] = Field(default_factory=list)
    habits: List[Habit] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    todos: List[Todo] = Field(default_factory=list)
    daily_data: Dict[str, DailyRecord] = Field(default_factory=dict)
    dashboard_order: List[DashboardOrderItem] = Field(default_factory=list)

    def find_habit(self, habit_id: int) -> Optional[Habit]:
        return next((habit for habit in self.habits if habit.id == habit_id), None)

    def find_routine(self, routine_id: int) -> Optional[Routine]:
        return next((routine for routine in self.routines if routine.id == routine_id), None)


class UserDocument(_DocumentModel):
    user_info: UserInfo = Field(default_factory=UserInfo)
    data: UserData = Field(default_factory=UserData)


class Challenge(_DocumentModel):
    id: str
    virtue: str
    challenge: str = ""
    difficulty: str = ""


class ExportData(_DocumentModel):
    version: str
    export_date: datetime.datetime
    user_data: UserData
    user_info: UserInfo = Field(default_factory=UserInfo)


def elapsed_ms(start: datetime.datetime, end: datetime.datetime) -> int:
    """Whole milliseconds between two timestamps, never negative."""
    return max(int((end - start).total_seconds() * 1000), 0)


__all__ = [
    "TrackingType",
    "Habit",
    "Routine",
    "Goal",
    "Todo",
    "HabitCompletion",
    "HabitTime",
    "RoutineCompletion",
    "DailyChallenge",
    "DailyRecord",
    "DashboardOrderItem",
    "UserInfo",
    "UserData",
    "UserDocument",
    "Challenge",
    "ExportData",
    "elapsed_ms",
]
