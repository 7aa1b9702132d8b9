"""
Logging configuration.

Configures structlog once at startup. Development gets a readable console
renderer; production (or LOG_JSON=true) gets one JSON object per line.
"""

import logging

import structlog

from core.config import settings

LOG_FORMAT = "%(message)s"


def setup_logging(env: str | None = None) -> None:
    """Setup logging configuration based on the environment."""
    env = (env or settings.APP_ENV).lower()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.DEBUG if env in ("local", "development", "dev") else logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    use_json = settings.LOG_JSON or env in ("production", "prod")
    renderer = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
