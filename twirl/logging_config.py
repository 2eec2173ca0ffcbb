"""Logging configuration for twirl.

Every module logs under the ``twirl`` package logger. Records describe
what happened to a conversation (platform, record id, turn counts and
character lengths, retry attempts) and never include the conversation
text itself, so a debug log can be shared without leaking chats.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger("twirl")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    debug: bool = False
) -> None:
    """Route package logs to stderr and, optionally, a log file.

    Calling it again replaces the previous handlers, so the CLI can
    reconfigure after reading the config file.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file that receives the same records
        debug: If True, set level to DEBUG (extraction attempts, selector
            tiers, store merges)
    """
    if debug:
        level = logging.DEBUG

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging configured: level=%s, file=%s", logging.getLevelName(level), log_file)


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger("store")`` -> ``twirl.store``."""
    return logging.getLogger(f"twirl.{name}")
