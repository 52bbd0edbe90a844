"""Daily virtue challenge selection and per-date challenge state."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

from habit_tracker.core.errors import InvalidTransitionError
from habit_tracker.models import Challenge, DailyChallenge
from habit_tracker.services.date_service import date_key, sunday_based_weekday
from habit_tracker.services.store_service import HabitDataStore

logger = logging.getLogger(__name__)


class ChallengeSource(Protocol):
    async def list_challenges(self) -> List[Challenge]: ...


class StaticChallengeSource:
    def __init__(self, challenges: Sequence[Challenge] = ()):
        self.challenges = list(challenges)

    async def list_challenges(self) -> List[Challenge]:
        return list(self.challenges)


def select_challenge(challenges: Sequence[Challenge], virtue: str, weekday_index: int) -> Optional[Challenge]:
    # 日本語: 曜日番号を徳目ごとの件数で割った余りで選ぶ / English: Rotate by weekday index modulo the virtue's challenge count
    matching = [challenge for challenge in challenges if challenge.virtue == virtue]
    if not matching:
        return None
    return matching[weekday_index % len(matching)]


async def load_daily_challenge(
    store: HabitDataStore, source: ChallengeSource, virtue: str, date: Any
) -> Optional[DailyChallenge]:
    """Return the date's challenge, assigning one on first load.

    Failures are logged and ``None`` is returned so the rest of the dashboard
    keeps working without the feature.
    """
    day = date_key(date)
    try:
        record = await store.load(day)
        if record is not None and record.daily_challenge and record.daily_challenge.challenge_id:
            return record.daily_challenge
        challenge = select_challenge(await source.list_challenges(), virtue, sunday_based_weekday(day))
        if challenge is None:
            return None
        daily = DailyChallenge(
            challenge_id=challenge.id,
            virtue=challenge.virtue,
            challenge=challenge.challenge,
            difficulty=challenge.difficulty,
        )
        await store.set_daily_challenge(day, daily)
        return daily
    except Exception:
        logger.exception("Daily challenge auto-load failed for %s", day)
        return None


async def _mark(store: HabitDataStore, date: Any, accepted: bool, completed: bool) -> DailyChallenge:
    day = date_key(date)
    record = await store.load(day)
    current = record.daily_challenge if record else None
    if current is None or not current.challenge_id:
        raise InvalidTransitionError("No daily challenge assigned for this date")
    now = store.clock()
    update = {}
    if accepted and not current.accepted:
        update.update(accepted=True, accepted_at=now)
    if completed and not current.completed:
        update.update(completed=True, completed_at=now)
        if not current.accepted:
            update.update(accepted=True, accepted_at=now)
    updated = current.model_copy(update=update)
    await store.set_daily_challenge(day, updated)
    return updated


async def accept_daily_challenge(store: HabitDataStore, date: Any) -> DailyChallenge:
    return await _mark(store, date, accepted=True, completed=False)


async def complete_daily_challenge(store: HabitDataStore, date: Any) -> DailyChallenge:
    return await _mark(store, date, accepted=True, completed=True)


__all__ = [
    "ChallengeSource",
    "StaticChallengeSource",
    "select_challenge",
    "load_daily_challenge",
    "accept_daily_challenge",
    "complete_daily_challenge",
]
