from __future__ import annotations

import logging

from matchmaker.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Give the package logger one stream handler at the configured level.

    The app lifespan may run several times in one process (tests), so an
    existing handler is reused.
    """
    package_logger = logging.getLogger("matchmaker")
    package_logger.setLevel((level or settings.log_level).upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
