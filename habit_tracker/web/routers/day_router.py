"""Day detail API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from habit_tracker.services.challenge_service import accept_daily_challenge, complete_daily_challenge
from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.web import handlers as web_handlers
from habit_tracker.web.dependencies import get_tracker

router = APIRouter()


@router.get("/api/day/{date_str}", name="api_day_view")
async def api_day_view(date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.day_view(date_str, tracker)


@router.get("/api/day/{date_str}/progress", name="api_day_progress")
async def api_day_progress(date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.day_progress(date_str, tracker)


@router.put("/api/day/{date_str}/todos", name="update_todos")
async def update_todos(request: Request, date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_todos(request, date_str, tracker)


@router.put("/api/day/{date_str}/virtues", name="update_virtues")
async def update_virtues(request: Request, date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_virtues(request, date_str, tracker)


@router.get("/api/day/{date_str}/challenge", name="daily_challenge")
async def daily_challenge(date_str: str, virtue: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.daily_challenge(date_str, virtue, tracker)


@router.post("/api/day/{date_str}/challenge/accept", name="accept_daily_challenge")
async def accept_challenge(date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.mark_daily_challenge(
        date_str,
        False,
        tracker,
        accept_fn=accept_daily_challenge,
        complete_fn=complete_daily_challenge,
    )


@router.post("/api/day/{date_str}/challenge/complete", name="complete_daily_challenge")
async def complete_challenge(date_str: str, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.mark_daily_challenge(
        date_str,
        True,
        tracker,
        accept_fn=accept_daily_challenge,
        complete_fn=complete_daily_challenge,
    )
