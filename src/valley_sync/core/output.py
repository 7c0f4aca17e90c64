"""
Unified output system using Loguru.

Every operator-facing message goes through log(), which records it in the log
file and echoes it to the console.
"""

import sys
from pathlib import Path

from loguru import logger
from rich.markup import escape

from .console import get_console

_LEVEL_STYLES = {
    "debug": "cyan",
    "info": "white",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def setup_loguru(log_file: Path, level: str = "INFO", console_output: bool = False) -> None:
    """
    Configure loguru with a rotating file sink.

    Args:
        log_file: Path to log file
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        console_output: Also send records to stderr
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to file AND prints for the operator.

    Use this instead of print() for user-facing messages that should also be logged.

    Args:
        message: User-facing message
        level: Log level (debug, info, success, warning, error)
    """
    log_func = getattr(logger.opt(depth=1), level)
    log_func(message)

    if level == "debug":
        return

    get_console().print(escape(message), style=_LEVEL_STYLES.get(level, "white"))
