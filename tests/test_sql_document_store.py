import asyncio
import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from habit_tracker.core.errors import NotFoundError, StoreUnavailableError
from habit_tracker.models import HabitCompletion
from habit_tracker.services import collaborators
from habit_tracker.services.collaborators import SqlDocumentStore


@pytest.fixture()
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield SqlDocumentStore(engine)
    engine.dispose()


def test_set_get_and_field_path_update(sql_store):
    asyncio.run(sql_store.set_document("u", {"userInfo": {"name": "Ada"}, "data": {"habits": []}}))
    asyncio.run(sql_store.update_fields("u", {"userInfo.lastActive": "2026-03-04T07:00:00", "data": {"habits": [1]}}))

    document = asyncio.run(sql_store.get_document("u"))

    assert document == {
        "userInfo": {"name": "Ada", "lastActive": "2026-03-04T07:00:00"},
        "data": {"habits": [1]},
    }
    assert asyncio.run(sql_store.get_document("missing")) is None


def test_update_of_missing_document_is_not_found(sql_store):
    with pytest.raises(NotFoundError):
        asyncio.run(sql_store.update_fields("ghost", {"data": {}}))


def test_tracker_runs_against_sql_store(make_tracker, sql_store, clock):
    tracker = make_tracker(document_store=sql_store)
    habit = asyncio.run(tracker.store.add_habit({"name": "Stretch", "routine_id": 1}))
    asyncio.run(tracker.habits.start(habit.id))
    clock.advance(seconds=75)
    asyncio.run(tracker.habits.complete(habit.id))

    reloaded = make_tracker(document_store=sql_store)
    record = asyncio.run(reloaded.store.load(clock()))
    started_at = clock() - datetime.timedelta(seconds=75)
    assert record.habit_completions[habit.id] == HabitCompletion.finished(started_at, clock())
    assert asyncio.run(reloaded.store.get_habit(habit.id)).total_duration_sum == 75000


def test_operational_errors_become_retryable(sql_store, monkeypatch):
    class _DownSession:
        def __init__(self, _engine):
            pass

        def get(self, *_args):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        def rollback(self):
            return None

        def close(self):
            return None

    monkeypatch.setattr(collaborators, "Session", _DownSession)

    with pytest.raises(StoreUnavailableError) as excinfo:
        asyncio.run(sql_store.get_document("u"))
    assert excinfo.value.retryable is True
