"""Core package exports."""

from .config import (
    BASE_DIR,
    DATABASE_URL,
    DEFAULT_EXPECTED_DURATION_MS,
    EXCUSE_REASONS,
    PROXY_PREFIX,
    get_max_routines,
    get_timer_interval,
)
from .db import get_engine, upgrade_to_head
from .errors import HabitTrackerError

__all__ = [
    "BASE_DIR",
    "DATABASE_URL",
    "DEFAULT_EXPECTED_DURATION_MS",
    "EXCUSE_REASONS",
    "PROXY_PREFIX",
    "get_max_routines",
    "get_timer_interval",
    "get_engine",
    "upgrade_to_head",
    "HabitTrackerError",
]
