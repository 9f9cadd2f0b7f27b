"""Logging configuration."""

from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from ``level`` or ``ORQUEL_LOG_LEVEL``.

    Leaves existing handlers alone so embedding applications keep control.
    """

    level_name = (level or os.getenv("ORQUEL_LOG_LEVEL", "INFO")).strip().upper()
    resolved = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=resolved, format=_FORMAT)
    logging.getLogger("orquel").setLevel(resolved)

    # Reduce noise from verbose third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
