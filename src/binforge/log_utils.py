"""Logging setup for the binforge command line."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Setup logging for a binforge invocation.

    Console output goes to stderr so it never mixes with command results.
    BINFORGE_LOG_LEVEL overrides the console level.

    Args:
        verbose: Log INFO messages to the console (default is WARNING)
        log_file: Also log everything at DEBUG to this rotating file
    """
    level_name = os.environ.get("BINFORGE_LOG_LEVEL", "").upper()
    console_level = logging.INFO if verbose else logging.WARNING
    if level_name:
        console_level = logging.getLevelName(level_name)
        if not isinstance(console_level, int):
            console_level = logging.WARNING

    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if log_file else console_level)
    for handler in list(logger.handlers):
        if getattr(handler, "_binforge", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._binforge = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler._binforge = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)
