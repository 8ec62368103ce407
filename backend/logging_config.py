"""Centralized logging configuration."""

import logging

from config import settings

# Third-party loggers that drown out lot accounting output at INFO.
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "urllib3",
    "yfinance",
    "uvicorn.access",
)


def setup_logging(level: str | None = None) -> None:
    """Configure root logging for the lot tracker.

    ``level`` overrides ``settings.LOG_LEVEL`` (used by scripts and tests).
    Loggers in :data:`QUIET_LOGGERS` are pinned to WARNING.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, level_name),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
