"""Request-scoped wiring of the tracker and its shared collaborators."""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Header, Request

from habit_tracker.core.db import get_engine
from habit_tracker.core.errors import StoreNotConfiguredError
from habit_tracker.services.challenge_service import ChallengeSource, StaticChallengeSource
from habit_tracker.services.collaborators import (
    AuthenticatedUser,
    DocumentStore,
    SqlDocumentStore,
    StaticConnectivityProbe,
    StaticIdentityProvider,
)
from habit_tracker.services.date_service import Clock
from habit_tracker.services.session_service import SessionRegistry
from habit_tracker.services.tracker_service import HabitTracker

logger = logging.getLogger(__name__)


@dataclass
class TrackerRuntime:
    """State that outlives a single request."""

    document_store: Optional[DocumentStore] = None
    clock: Clock = datetime.datetime.now
    sessions: Optional[SessionRegistry] = None
    connectivity: StaticConnectivityProbe = field(default_factory=StaticConnectivityProbe)
    challenges: ChallengeSource = field(default_factory=StaticChallengeSource)
    locks: Dict[str, asyncio.Lock] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 日本語: サーバー側では表示用タイマーを回さない / English: No cosmetic ticking on the server side
        if self.sessions is None:
            self.sessions = SessionRegistry(clock=self.clock, ticking=False)


def build_sql_runtime() -> TrackerRuntime:
    """Runtime backed by the configured database."""
    try:
        engine = get_engine()
    except Exception as exc:
        logger.error("Document store unavailable: %s", exc)
        return TrackerRuntime(document_store=None)
    return TrackerRuntime(document_store=SqlDocumentStore(engine))


def get_runtime(request: Request) -> TrackerRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise StoreNotConfiguredError("Document store is not configured")
    return runtime


def get_tracker(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> HabitTracker:
    # 日本語: 認証はリバースプロキシが付与するヘッダーで受け取る / English: Identity arrives via headers set by the fronting proxy
    runtime = get_runtime(request)
    identity = StaticIdentityProvider()
    if x_user_id:
        identity.sign_in(AuthenticatedUser(uid=x_user_id, name=x_user_name or "", email=x_user_email or ""))
    return HabitTracker(
        runtime.document_store,
        identity,
        runtime.connectivity,
        clock=runtime.clock,
        sessions=runtime.sessions,
        challenges=runtime.challenges,
        locks=runtime.locks,
    )


__all__ = ["TrackerRuntime", "build_sql_runtime", "get_runtime", "get_tracker"]
