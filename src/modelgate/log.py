from __future__ import annotations

"""Logging setup driven by LoggingSettings."""

import logging
from typing import Optional

from .config import LoggingSettings

ROOT_LOGGER = "modelgate"


def configure_logging(settings: Optional[LoggingSettings] = None, *, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Attach a handler with the configured format to the `modelgate` logger.

    Calling it again replaces the handler installed by a previous call
    instead of stacking handlers.
    """
    settings = settings or LoggingSettings()
    logger = logging.getLogger(ROOT_LOGGER)

    for h in list(logger.handlers):
        if getattr(h, "_modelgate", False):
            logger.removeHandler(h)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(settings.format))
    handler._modelgate = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(settings.level)
    return logger
