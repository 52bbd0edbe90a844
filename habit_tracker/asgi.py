"""ASGI entrypoint: ``uvicorn habit_tracker.asgi:app``."""

import logging

from .application import app, create_app

# 日本語: 実行時ログ設定 / English: Runtime logging setup
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

__all__ = ["app", "create_app"]
