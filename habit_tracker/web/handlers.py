"""HTTP handler implementations used by the routers."""

from __future__ import annotations

import dataclasses
import datetime
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder

from habit_tracker.core.errors import PreconditionError
from habit_tracker.services.date_service import parse_date
from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.services.view_service import format_duration


def _parse_date_param(value: str | None) -> datetime.date | None:
    if value is None or value == "":
        return None
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return payload


def _serialize(value: Any) -> Any:
    # 日本語: dataclass と pydantic モデルを JSON 互換に変換 / English: Turn dataclasses and document models into JSON-ready data
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return jsonable_encoder(
            {field.name: _serialize(getattr(value, field.name)) for field in dataclasses.fields(value)}
        )
    if hasattr(value, "to_document"):
        return value.to_document()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return jsonable_encoder(value)


# ----------------------------------------------------------------------
# habits


async def list_habits(tracker: HabitTracker):
    habits = await tracker.store.list_habits()
    return {"habits": _serialize(habits)}


async def add_habit(request: Request, tracker: HabitTracker):
    payload = await _json_body(request)
    if not (payload.get("name") or "").strip():
        raise PreconditionError("Habit name is required")
    habit = await tracker.store.add_habit(payload)
    return {"habit": _serialize(habit)}


async def update_habit(request: Request, habit_id: int, tracker: HabitTracker):
    payload = await _json_body(request)
    habit = await tracker.store.update_habit(habit_id, payload)
    return {"habit": _serialize(habit)}


async def delete_habit(habit_id: int, tracker: HabitTracker):
    await tracker.store.delete_habit(habit_id)
    return {"status": "deleted", "id": habit_id}


async def habit_status(habit_id: int, date_str: str | None, tracker: HabitTracker):
    status = await tracker.habits.status(habit_id, _parse_date_param(date_str))
    return _serialize(status)


async def habit_stats(habit_id: int, tracker: HabitTracker):
    stats = await tracker.habit_stats(habit_id)
    payload = _serialize(stats)
    payload["mean_label"] = format_duration(stats.mean_seconds if stats.completion_count else None)
    return payload


async def start_habit(habit_id: int, date_str: str | None, tracker: HabitTracker):
    return _serialize(await tracker.habits.start(habit_id, _parse_date_param(date_str)))


async def complete_habit(request: Request, habit_id: int, date_str: str | None, tracker: HabitTracker):
    payload = await _json_body(request) if await request.body() else {}
    completion = await tracker.habits.complete(
        habit_id, _parse_date_param(date_str), notes=str(payload.get("notes") or "")
    )
    return {"completion": _serialize(completion)}


async def excuse_habit(request: Request, habit_id: int, date_str: str | None, tracker: HabitTracker):
    payload = await _json_body(request)
    completion = await tracker.habits.excuse(habit_id, payload.get("reason"), _parse_date_param(date_str))
    return {"completion": _serialize(completion)}


async def restart_habit(habit_id: int, date_str: str | None, tracker: HabitTracker):
    return _serialize(await tracker.habits.restart(habit_id, _parse_date_param(date_str)))


async def cancel_habit(habit_id: int, date_str: str | None, tracker: HabitTracker):
    cancelled = tracker.habits.cancel(habit_id, _parse_date_param(date_str))
    return {"cancelled": cancelled}


# ----------------------------------------------------------------------
# routines


async def list_routines(tracker: HabitTracker):
    return {"routines": _serialize(await tracker.store.list_routines())}


async def add_routine(request: Request, tracker: HabitTracker):
    payload = await _json_body(request)
    if not (payload.get("name") or "").strip():
        raise PreconditionError("Routine name is required")
    return {"routine": _serialize(await tracker.store.add_routine(payload))}


async def update_routine(request: Request, routine_id: int, tracker: HabitTracker):
    payload = await _json_body(request)
    return {"routine": _serialize(await tracker.store.update_routine(routine_id, payload))}


async def delete_routine(routine_id: int, keep_habits: bool, tracker: HabitTracker):
    await tracker.store.delete_routine(routine_id, keep_habits=keep_habits)
    return {"status": "deleted", "id": routine_id}


async def add_routine_habit(request: Request, routine_id: int, tracker: HabitTracker):
    payload = await _json_body(request)
    if not (payload.get("name") or "").strip():
        raise PreconditionError("Habit name is required")
    habit = await tracker.store.add_habit({**payload, "routine_id": routine_id})
    return {"habit": _serialize(habit)}


async def ensure_default_routines(tracker: HabitTracker):
    added = await tracker.store.ensure_default_routines()
    return {"added": added, "routines": _serialize(await tracker.store.list_routines())}


async def routine_status(routine_id: int, date_str: str | None, tracker: HabitTracker):
    return _serialize(await tracker.routines.status(routine_id, _parse_date_param(date_str)))


async def routine_action(
    request: Request, routine_id: int, action: str, date_str: str | None, tracker: HabitTracker
):
    # 日本語: ルーチン実行中の操作を状態機械へ委譲 / English: Delegate in-run routine actions to the state machine
    date_value = _parse_date_param(date_str)
    runner = tracker.routines
    if action == "start":
        return _serialize(await runner.start(routine_id, date_value))
    if action == "complete-current":
        payload = await _json_body(request) if await request.body() else {}
        return _serialize(
            await runner.complete_current(routine_id, date_value, notes=str(payload.get("notes") or ""))
        )
    if action == "excuse-current":
        payload = await _json_body(request)
        return _serialize(await runner.excuse_current(routine_id, payload.get("reason"), date_value))
    if action == "skip":
        return _serialize(await runner.skip(routine_id, date_value))
    if action == "next":
        return _serialize(await runner.move(routine_id, 1, date_value))
    if action == "previous":
        return _serialize(await runner.move(routine_id, -1, date_value))
    if action == "select":
        payload = await _json_body(request)
        try:
            habit_id = int(payload.get("habit_id"))
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="habit_id is required")
        return _serialize(await runner.select(routine_id, habit_id, date_value))
    if action == "end":
        return {"completion": _serialize(await runner.end(routine_id, date_value))}
    raise HTTPException(status_code=404, detail=f"Unknown routine action: {action}")


async def routine_report(routine_id: int, tracker: HabitTracker):
    return {"habits": _serialize(await tracker.routine_report(routine_id))}


async def routine_composition(routine_id: int, date_str: str, tracker: HabitTracker):
    date_value = _parse_date_param(date_str)
    return _serialize(await tracker.routine_composition(routine_id, date_value))


# ----------------------------------------------------------------------
# day / history


async def day_view(date_str: str, tracker: HabitTracker):
    date_value = _parse_date_param(date_str)
    record = await tracker.store.load(date_value)
    progress = await tracker.daily_progress(date_value)
    return {
        "date": date_value.isoformat(),
        "record": _serialize(record) if record is not None else None,
        "progress": _serialize(progress),
    }


async def day_progress(date_str: str, tracker: HabitTracker):
    return _serialize(await tracker.daily_progress(_parse_date_param(date_str)))


async def update_todos(request: Request, date_str: str, tracker: HabitTracker):
    payload = await _json_body(request)
    todos = payload.get("todos")
    if not isinstance(todos, list):
        raise HTTPException(status_code=400, detail="todos must be a list")
    return {"todos": _serialize(await tracker.update_todos(todos, _parse_date_param(date_str)))}


async def update_virtues(request: Request, date_str: str, tracker: HabitTracker):
    payload = await _json_body(request)
    check_ins = payload.get("virtueCheckIns", payload)
    return {"virtueCheckIns": await tracker.check_in_virtues(check_ins, _parse_date_param(date_str))}


async def daily_challenge(date_str: str, virtue: str, tracker: HabitTracker):
    challenge = await tracker.daily_challenge(virtue, _parse_date_param(date_str))
    return {"dailyChallenge": _serialize(challenge) if challenge is not None else None}


async def mark_daily_challenge(date_str: str, completed: bool, tracker: HabitTracker, *, accept_fn, complete_fn):
    date_value = _parse_date_param(date_str)
    marker = complete_fn if completed else accept_fn
    return {"dailyChallenge": _serialize(await marker(tracker.store, date_value))}


async def weekly_history(end_str: str | None, tracker: HabitTracker):
    return _serialize(await tracker.weekly_rollup(_parse_date_param(end_str)))


async def monthly_history(year: int | None, month: int | None, tracker: HabitTracker):
    today = tracker.clock().date()
    return _serialize(await tracker.monthly_rollup(year or today.year, month or today.month))


# ----------------------------------------------------------------------
# account


async def export_data(tracker: HabitTracker):
    return _serialize(await tracker.store.export_data())


async def import_data(request: Request, tracker: HabitTracker):
    payload = await _json_body(request)
    await tracker.store.import_data(payload)
    return {"status": "imported"}


async def update_settings(request: Request, tracker: HabitTracker):
    payload = await _json_body(request)
    return {"settings": await tracker.store.update_settings(payload)}


async def update_dashboard_order(request: Request, tracker: HabitTracker):
    payload = await _json_body(request)
    items = payload.get("dashboardOrder")
    if not isinstance(items, list):
        raise HTTPException(status_code=400, detail="dashboardOrder must be a list")
    return {"dashboardOrder": _serialize(await tracker.store.update_dashboard_order(items))}
