"""
Logging setup shared by the app and the engine services.
"""
from __future__ import annotations

import logging

from lead_engine.config import settings


def configure_logging(level: str | None = None) -> None:
    """Initialize basic logging with a shared format and log level.

    The level can be provided directly or via the ``LOG_LEVEL`` setting
    (defaults to ``INFO``).
    """

    resolved_level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
