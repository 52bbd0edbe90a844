"""Habit CRUD and lifecycle routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.web import handlers as web_handlers
from habit_tracker.web.dependencies import get_tracker

# 日本語: 習慣の登録と実行操作 / English: Habit registration and lifecycle router
router = APIRouter()


@router.get("/api/habits", name="api_habits")
async def api_habits(tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.list_habits(tracker)


@router.post("/api/habits", name="add_habit")
async def add_habit(request: Request, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.add_habit(request, tracker)


@router.patch("/api/habits/{habit_id}", name="update_habit")
async def update_habit(request: Request, habit_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_habit(request, habit_id, tracker)


@router.delete("/api/habits/{habit_id}", name="delete_habit")
async def delete_habit(habit_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.delete_habit(habit_id, tracker)


@router.get("/api/habits/{habit_id}/status", name="habit_status")
async def habit_status(habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.habit_status(habit_id, date, tracker)


@router.get("/api/habits/{habit_id}/stats", name="habit_stats")
async def habit_stats(habit_id: int, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.habit_stats(habit_id, tracker)


@router.post("/api/habits/{habit_id}/start", name="start_habit")
async def start_habit(habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.start_habit(habit_id, date, tracker)


@router.post("/api/habits/{habit_id}/complete", name="complete_habit")
async def complete_habit(
    request: Request, habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)
):
    return await web_handlers.complete_habit(request, habit_id, date, tracker)


@router.post("/api/habits/{habit_id}/excuse", name="excuse_habit")
async def excuse_habit(
    request: Request, habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)
):
    return await web_handlers.excuse_habit(request, habit_id, date, tracker)


@router.post("/api/habits/{habit_id}/restart", name="restart_habit")
async def restart_habit(habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.restart_habit(habit_id, date, tracker)


@router.post("/api/habits/{habit_id}/cancel", name="cancel_habit")
async def cancel_habit(habit_id: int, date: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    # 日本語: 計測中の取り消しは保存を伴わない / English: Cancelling a running timer never writes
    return await web_handlers.cancel_habit(habit_id, date, tracker)
