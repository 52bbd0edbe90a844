import asyncio

from habit_tracker.services.session_service import HABIT, ROUTINE, SessionRegistry


def test_start_is_idempotent_and_restart_resets(clock):
    registry = SessionRegistry(clock=clock, ticking=False)
    first = registry.start("u", HABIT, 1, "2026-03-04")
    clock.advance(seconds=12)

    assert registry.start("u", HABIT, 1, "2026-03-04") is first
    assert registry.elapsed_seconds(first) == 12

    restarted = registry.restart("u", HABIT, 1, "2026-03-04")
    assert restarted.started_at == clock()
    assert registry.elapsed_seconds(restarted) == 0


def test_sessions_are_keyed_by_user_kind_entity_and_date(clock):
    registry = SessionRegistry(clock=clock, ticking=False)
    registry.start("u", HABIT, 1, "2026-03-04")
    registry.start("u", ROUTINE, 1, "2026-03-04")
    registry.start("v", HABIT, 1, "2026-03-04")

    assert len(registry.sessions()) == 3
    assert registry.clear("u", HABIT, 1, "2026-03-05") is None
    registry.clear_all()
    assert registry.sessions() == []


def test_clearing_cancels_the_ticker(clock):
    ticks = []

    async def _scenario():
        registry = SessionRegistry(clock=clock, interval=0.01, on_tick=lambda session, seconds: ticks.append(seconds))
        session = registry.start("u", HABIT, 1, "2026-03-04")
        clock.advance(seconds=5)
        await asyncio.sleep(0.05)
        assert session.ticker.running
        registry.clear("u", HABIT, 1, "2026-03-04")
        await asyncio.sleep(0)
        return session

    session = asyncio.run(_scenario())

    assert not session.ticker.running
    assert ticks and ticks[-1] == 5


def test_ticker_is_inert_outside_an_event_loop(clock):
    registry = SessionRegistry(clock=clock, interval=0.01)
    session = registry.start("u", HABIT, 1, "2026-03-04")

    assert session.ticker is not None
    assert not session.ticker.running
    registry.clear("u", HABIT, 1, "2026-03-04")
