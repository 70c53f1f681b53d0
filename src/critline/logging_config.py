"""Logging setup shared by the CLI and the MCP server."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_LEVEL_ENV_VAR = "CRITLINE_LOG_LEVEL"
LOG_FILE_ENV_VAR = "CRITLINE_LOG_FILE"


def setup_logging(level: str | int | None = None, log_file: str | Path | None = None) -> logging.Logger:
    """Configure the ``critline`` logger.

    Always logs to stderr (stdout belongs to command output and to the MCP
    stdio transport).  A rotating file handler is added when *log_file* or
    CRITLINE_LOG_FILE is set.  Calling it again replaces the handlers.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    if log_file is None:
        log_file = os.environ.get(LOG_FILE_ENV_VAR) or None

    logger = logging.getLogger("critline")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=1_000_000,  # 1 MB per file
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        logger.addHandler(file_handler)
        logger.info("Logging initialized. Log file at %s", path)

    return logger
