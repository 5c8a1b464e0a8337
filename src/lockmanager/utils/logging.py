"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys
from typing import Union

from rich.logging import RichHandler


ROOT_LOGGER = "lockmanager"


def get_logger(name: str) -> logging.Logger:
    """Return the library logger for ``name``. No handlers are attached here."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: Union[int, str] = logging.INFO, *, rich: bool = True) -> logging.Logger:
    """Attach a handler to the library's root logger once and return it."""
    logger = logging.getLogger(ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    if logger.handlers:
        return logger

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger
