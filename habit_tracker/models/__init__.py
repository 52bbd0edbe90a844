"""Model exports for Habit Tracker."""

from .document_models import UserDocumentRow
from .entities import (
    Challenge,
    DailyChallenge,
    DailyRecord,
    DashboardOrderItem,
    ExportData,
    Goal,
    Habit,
    HabitCompletion,
    HabitTime,
    Routine,
    RoutineCompletion,
    Todo,
    TrackingType,
    UserData,
    UserDocument,
    UserInfo,
    elapsed_ms,
)

__all__ = [
    "UserDocumentRow",
    "Challenge",
    "DailyChallenge",
    "DailyRecord",
    "DashboardOrderItem",
    "ExportData",
    "Goal",
    "Habit",
    "HabitCompletion",
    "HabitTime",
    "Routine",
    "RoutineCompletion",
    "Todo",
    "TrackingType",
    "UserData",
    "UserDocument",
    "UserInfo",
    "elapsed_ms",
]
