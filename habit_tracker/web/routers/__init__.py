"""Router exports."""

# 日本語: 各機能ルーターを集約して application.py から一括 import 可能にする / English: Re-export feature routers for centralized app wiring
from .account_router import router as account_router
from .day_router import router as day_router
from .habits_router import router as habits_router
from .history_router import router as history_router
from .routines_router import router as routines_router

__all__ = [
    "habits_router",
    "routines_router",
    "day_router",
    "history_router",
    "account_router",
]
