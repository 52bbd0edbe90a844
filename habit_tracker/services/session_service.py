"""In-progress session state for habit and routine timers.

A session records when a habit (or a routine run) was started for a given
date. Completing, excusing, restarting or backing out are explicit operations
on this record. Each session may own an elapsed-time ticker; the ticker is
cancelled whenever its session is cleared or replaced.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from habit_tracker.core.config import get_timer_interval
from habit_tracker.services.date_service import Clock

logger = logging.getLogger(__name__)

HABIT = "habit"
ROUTINE = "routine"

SessionKey = Tuple[str, str, int, str]
TickCallback = Callable[["InProgressSession", int], None]


class ElapsedTicker:
    """Advances an elapsed-seconds counter once per interval until cancelled."""

    def __init__(self, started_at: datetime.datetime, clock: Clock, interval: float, on_tick: Optional[TickCallback]):
        self.started_at = started_at
        self.clock = clock
        self.interval = interval
        self.on_tick = on_tick
        self.elapsed_seconds = 0
        self._task: Optional[asyncio.Task] = None
        self._session: Optional[InProgressSession] = None

    def start(self, session: "InProgressSession") -> None:
        self._session = session
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # 日本語: イベントループ外では表示用カウンタを動かさない / English: No running loop means no cosmetic counter
            return
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            elapsed = (self.clock() - self.started_at).total_seconds()
            self.elapsed_seconds = max(int(elapsed), 0)
            if self.on_tick is not None and self._session is not None:
                self.on_tick(self._session, self.elapsed_seconds)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


@dataclass
class InProgressSession:
    user_id: str
    kind: str
    entity_id: int
    date: str
    started_at: datetime.datetime
    cursor: int = 0
    ticker: Optional[ElapsedTicker] = field(default=None, repr=False)

    @property
    def key(self) -> SessionKey:
        return (self.user_id, self.kind, self.entity_id, self.date)


class SessionRegistry:
    """Holds the in-progress sessions of every user served by this process."""

    def __init__(
        self,
        clock: Clock = datetime.datetime.now,
        ticking: bool = True,
        interval: Optional[float] = None,
        on_tick: Optional[TickCallback] = None,
    ):
        self.clock = clock
        self.ticking = ticking
        self.interval = interval if interval is not None else get_timer_interval()
        self.on_tick = on_tick
        self._sessions: Dict[SessionKey, InProgressSession] = {}

    def get(self, user_id: str, kind: str, entity_id: int, date: str) -> Optional[InProgressSession]:
        return self._sessions.get((user_id, kind, entity_id, date))

    def start(self, user_id: str, kind: str, entity_id: int, date: str) -> InProgressSession:
        # 日本語: 既に計測中なら開始時刻を保持する / English: Keep the original start time while already in progress
        existing = self.get(user_id, kind, entity_id, date)
        if existing is not None:
            return existing
        return self._open(user_id, kind, entity_id, date)

    def restart(self, user_id: str, kind: str, entity_id: int, date: str) -> InProgressSession:
        self.clear(user_id, kind, entity_id, date)
        return self._open(user_id, kind, entity_id, date)

    def clear(self, user_id: str, kind: str, entity_id: int, date: str) -> Optional[InProgressSession]:
        session = self._sessions.pop((user_id, kind, entity_id, date), None)
        if session is not None and session.ticker is not None:
            session.ticker.cancel()
        return session

    def clear_all(self) -> None:
        for key in list(self._sessions):
            self.clear(*key)

    def sessions(self) -> List[InProgressSession]:
        return list(self._sessions.values())

    def elapsed_seconds(self, session: InProgressSession) -> int:
        return max(int((self.clock() - session.started_at).total_seconds()), 0)

    def _open(self, user_id: str, kind: str, entity_id: int, date: str) -> InProgressSession:
        session = InProgressSession(
            user_id=user_id,
            kind=kind,
            entity_id=entity_id,
            date=date,
            started_at=self.clock(),
        )
        if self.ticking:
            session.ticker = ElapsedTicker(session.started_at, self.clock, self.interval, self.on_tick)
            session.ticker.start(session)
        self._sessions[session.key] = session
        logger.debug("Started %s session %s for %s", kind, entity_id, date)
        return session


__all__ = [
    "HABIT",
    "ROUTINE",
    "ElapsedTicker",
    "InProgressSession",
    "SessionRegistry",
]
