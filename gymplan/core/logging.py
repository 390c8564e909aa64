from __future__ import annotations

import logging
from logging import Logger

from .config import get_settings

_CHATTY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def configure_logging() -> Logger:
    """
    Configure logging for the bot and return the `gymplan` logger.

    Local runs log at DEBUG, everything else at INFO. HTTP client and job
    executor chatter is raised to WARNING outside local runs.
    """

    settings = get_settings()
    level = logging.DEBUG if settings.is_debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    if not settings.is_debug:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("gymplan")
    logger.setLevel(level)
    return logger
