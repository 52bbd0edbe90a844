"""Routine CRUD and run routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.web import handlers as web_handlers
from habit_tracker.web.dependencies import get_tracker

router = APIRouter()


@router.get("/api/routines", name="api_routines")
async def api_routines(tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.list_routines(tracker)


@router.post("/api/routines", name="add_routine")
async def add_routine(request: Request, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.add_routine(request, tracker)


@router.post("/api/routines/defaults", name="ensure_default_routines")
async def ensure_default_routines(tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.ensure_default_routines(tracker)


@router.patch("/api/routines/{routine_id}", name="update_routine")
async def update_routine(request: Request, routine_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_routine(request, routine_id, tracker)


@router.delete("/api/routines/{routine_id}", name="delete_routine")
async def delete_routine(routine_id: int, keep_habits: bool = False, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.delete_routine(routine_id, keep_habits, tracker)


@router.post("/api/routines/{routine_id}/habits", name="add_routine_habit")
async def add_routine_habit(request: Request, routine_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.add_routine_habit(request, routine_id, tracker)


@router.get("/api/routines/{routine_id}/status", name="routine_status")
async def routine_status(routine_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.routine_status(routine_id, date, tracker)


@router.get("/api/routines/{routine_id}/report", name="routine_report")
async def routine_report(routine_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.routine_report(routine_id, tracker)


@router.get("/api/routines/{routine_id}/composition/{date_str}", name="routine_composition")
async def routine_composition(routine_id: int, date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.routine_composition(routine_id, date_str, tracker)


@router.post("/api/routines/{routine_id}/{action}", name="routine_action")
async def routine_action(
    request: Request,
    routine_id: int,
    action: str,
    date: Optional[str] = None,
    tracker: HabitTracker = Depends(get_tracker),
):
    # 日本語: start / complete-current / excuse-current / skip / next / previous / select / end
    # English: In-run actions share one route and are dispatched by name
    return await web_handlers.routine_action(request, routine_id, action, date, tracker)
