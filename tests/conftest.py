import datetime
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from habit_tracker.services.collaborators import (  # noqa: E402
    AuthenticatedUser,
    InMemoryDocumentStore,
    StaticConnectivityProbe,
    StaticIdentityProvider,
)
from habit_tracker.services.session_service import SessionRegistry  # noqa: E402
from habit_tracker.services.tracker_service import HabitTracker  # noqa: E402


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start=None):
        self.now = start or datetime.datetime(2026, 3, 4, 7, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture()
def connectivity():
    return StaticConnectivityProbe(online=True)


@pytest.fixture()
def identity():
    return StaticIdentityProvider(AuthenticatedUser(uid="user-1", name="Ada", email="ada@example.com"))


@pytest.fixture()
def make_tracker(document_store, identity, connectivity, clock):
    def _make(**overrides):
        options = {
            "document_store": document_store,
            "identity": identity,
            "connectivity": connectivity,
            "clock": clock,
            "sessions": SessionRegistry(clock=clock, ticking=False),
        }
        options.update(overrides)
        return HabitTracker(**options)

    return _make


@pytest.fixture()
def tracker(make_tracker):
    return make_tracker()
