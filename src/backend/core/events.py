"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for logging and database connections.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.logging import setup_logging
from db.session import close_db, init_db

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        setup_logging()
        logger.info("app_starting")

        await init_db()
        logger.info("database_initialized")

        logger.info("app_started")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping")

        await close_db()

        logger.info("app_stopped")

    return stop_app
