"""Account-level routes: settings, ordering and data portability."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from habit_tracker.services.tracker_service import HabitTracker
from habit_tracker.web import handlers as web_handlers
from habit_tracker.web.dependencies import get_tracker

router = APIRouter()


@router.get("/api/account/export", name="export_data")
async def export_data(tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.export_data(tracker)


@router.post("/api/account/import", name="import_data")
async def import_data(request: Request, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.import_data(request, tracker)


@router.put("/api/account/settings", name="update_settings")
async def update_settings(request: Request, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_settings(request, tracker)


@router.put("/api/account/dashboard-order", name="update_dashboard_order")
async def update_dashboard_order(request: Request, tracker: HabitTracker = Depends(get_tracker)):
    return await web_handlers.update_dashboard_order(request, tracker)
