"""FastAPI application assembly."""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from habit_tracker.core.config import PROXY_PREFIX
from habit_tracker.core.errors import HabitTrackerError
from habit_tracker.web.dependencies import TrackerRuntime, build_sql_runtime
from habit_tracker.web.routers import (
    account_router,
    day_router,
    habits_router,
    history_router,
    routines_router,
)

logger = logging.getLogger(__name__)


def create_app(runtime_factory: Optional[Callable[[], TrackerRuntime]] = None) -> FastAPI:
    # 日本語: 逆プロキシ配下運用を想定して root_path を環境変数から解決 / English: Resolve root_path from env for reverse-proxy deployments
    proxy_prefix = os.getenv("PROXY_PREFIX", PROXY_PREFIX)
    app = FastAPI(root_path=proxy_prefix)
    app.state.runtime = None

    # 日本語: 機能別ルーターを順次登録 / English: Register feature routers
    app.include_router(habits_router)
    app.include_router(routines_router)
    app.include_router(day_router)
    app.include_router(history_router)
    app.include_router(account_router)

    @app.exception_handler(HabitTrackerError)
    async def _tracker_error(request: Request, exc: HabitTrackerError) -> JSONResponse:
        # 日本語: ドメイン例外を HTTP ステータスへ変換 / English: Map domain errors onto HTTP status codes
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "retryable": exc.retryable},
        )

    @app.on_event("startup")
    def _startup_runtime() -> None:
        # 日本語: 起動時にストアを構築しマイグレーションを適用 / English: Build the store (and migrate) on startup
        if app.state.runtime is None:
            app.state.runtime = (runtime_factory or build_sql_runtime)()

    @app.on_event("shutdown")
    def _shutdown_runtime() -> None:
        runtime = app.state.runtime
        if runtime is not None and runtime.sessions is not None:
            runtime.sessions.clear_all()

    return app


# 日本語: import 時点で既定アプリを構築 / English: Build default app instance at import time
app = create_app()
