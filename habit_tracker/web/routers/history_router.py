"""Weekly and monthly history routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.web import handlers as web_handlers
from habit_tracker.web.dependencies import get_tracker

# 日本語: 履歴集計API群 / English: History rollup router
router = APIRouter()


@router.get("/api/history/week", name="api_history_week")
async def api_history_week(end: Optional[str] = None, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.weekly_history(end, tracker)


@router.get("/api/history/month", name="api_history_month")
async def api_history_month(
    year: Optional[int] = None, month: Optional[int] = None, tracker: HabitTracker = Depends(get_tracker)
):
    return await web_handlers.monthly_history(year, month, tracker)
