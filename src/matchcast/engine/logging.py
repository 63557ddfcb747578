"""Logging helpers for the prediction engine."""

from __future__ import annotations

import logging
from typing import Iterable


def configure_logging(
    level: int | str = logging.INFO, handlers: Iterable[logging.Handler] | None = None
) -> None:
    """Configure root logging for scripts and the command line.

    Library code only ever logs through module loggers; applications that
    embed the engine call this once to get a consistent format.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=list(handlers) if handlers else None,
    )


__all__ = ["configure_logging"]
