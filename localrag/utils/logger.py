"""Structured logging setup using Loguru."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/localrag.log",
    console_level: Optional[str] = None,
) -> None:
    """
    Configure loguru for the CLI.

    The console sink shares stderr with Rich panels and the `ask` prompt, so
    it can run quieter than the file sink: pass console_level="WARNING" to
    keep per-query INFO lines out of the conversation while the rotating
    file still records them.  console_level defaults to log_level; no file
    sink is added when log_file is None.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=console_level or log_level,
        format=CONSOLE_FORMAT,
        colorize=True,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=log_level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            enqueue=True,
        )

    logger.debug(
        f"Logger initialised | console={console_level or log_level} "
        f"file={log_file or '<none>'}@{log_level}"
    )
