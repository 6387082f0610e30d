#!/usr/bin/env python3
"""
IMAGEDROP LOG SETUP
-------------------
Wires the 'imagedrop' logger hierarchy to the append-only history log
(one timestamped line per notable event) and to a Rich console handler.

Author: ImageDrop Team
Date: 2026-10-19
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from imagedrop.core.config import AgentConfig
from imagedrop.core.errors import StartupError

HISTORY_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
HISTORY_DATEFMT = "%Y/%m/%d %H:%M:%S"

ROOT_LOGGER = "imagedrop"


def configure_logging(config: AgentConfig, console: Optional[Console] = None,
                      level: int = logging.INFO) -> logging.Logger:
    """
    Attaches the history file handler (and optionally a console handler)
    to the package logger. Raises StartupError if the log cannot be opened.
    """
    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.history_log, mode="a", encoding="utf-8")
    except OSError as e:
        raise StartupError(f"Cannot open history log: {e}", str(config.history_log))

    file_handler.setFormatter(logging.Formatter(HISTORY_FORMAT, datefmt=HISTORY_DATEFMT))

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    # Re-configuring (tests, repeated CLI calls) must not duplicate lines
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(file_handler)

    if console is not None:
        logger.addHandler(RichHandler(console=console, show_path=False, markup=False))

    return logger


def flush_logging() -> None:
    """Flushes the package handlers so nothing is lost on exit."""
    for handler in logging.getLogger(ROOT_LOGGER).handlers:
        handler.flush()
