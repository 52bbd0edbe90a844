"""Running aggregate statistics for habits and routines.

Each habit and routine carries ``completionCount`` and ``totalDurationSum``.
The mean completion time is derived from the pair on demand, so both values
are always changed together. The functions here are pure: they return an
updated copy and never persist anything.
"""

from __future__ import annotations

from typing import Dict, Optional, TypeVar

from habit_tracker.models import Habit, Routine

AggregatedEntity = TypeVar("AggregatedEntity", Habit, Routine)


def apply_completion(entity: AggregatedEntity, duration_ms: int) -> AggregatedEntity:
    return entity.model_copy(
        update={
            "completion_count": entity.completion_count + 1,
            "total_duration_sum": entity.total_duration_sum + max(int(duration_ms), 0),
        }
    )


def reverse_completion(entity: AggregatedEntity, duration_ms: int) -> AggregatedEntity:
    # 日本語: 二重取り消しや壊れた値でも負にならないよう 0 でクランプ / English: Clamp at zero so a double reversal never goes negative
    return entity.model_copy(
        update={
            "completion_count": max(entity.completion_count - 1, 0),
            "total_duration_sum": max(entity.total_duration_sum - int(duration_ms), 0),
        }
    )


def mean_duration(entity: AggregatedEntity) -> Optional[float]:
    if entity.completion_count > 0:
        return entity.total_duration_sum / entity.completion_count
    return None


def mean_duration_seconds(entity: AggregatedEntity) -> Optional[int]:
    mean = mean_duration(entity)
    if mean is None:
        return None
    return int(mean // 1000)


def aggregate_fields(entity: AggregatedEntity) -> Dict[str, int]:
    """Partial-update payload carrying only the aggregate pair."""
    return {
        "completion_count": entity.completion_count,
        "total_duration_sum": entity.total_duration_sum,
    }


__all__ = [
    "apply_completion",
    "reverse_completion",
    "mean_duration",
    "mean_duration_seconds",
    "aggregate_fields",
]
