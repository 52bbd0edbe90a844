"""Service-layer exports."""

from .aggregate_service import apply_completion, mean_duration, reverse_completion
from .collaborators import (
    AuthenticatedUser,
    InMemoryDocumentStore,
    SqlDocumentStore,
    StaticConnectivityProbe,
    StaticIdentityProvider,
)
from .habit_state_service import HabitState, HabitStateMachine
from .routine_state_service import RoutineRunner, RoutineState
from .session_service import SessionRegistry
from .store_service import HabitDataStore
from .tracker_service import HabitTracker
from .view_service import daily_progress, monthly_rollup, routine_composition, rollup, weekly_rollup

__all__ = [
    "apply_completion",
    "reverse_completion",
    "mean_duration",
    "AuthenticatedUser",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "StaticConnectivityProbe",
    "StaticIdentityProvider",
    "HabitState",
    "HabitStateMachine",
    "RoutineRunner",
    "RoutineState",
    "SessionRegistry",
    "HabitDataStore",
    "HabitTracker",
    "daily_progress",
    "routine_composition",
    "rollup",
    "weekly_rollup",
    "monthly_rollup",
]
