"""Logging setup for the command line."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file for a rotating log alongside the console
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Repeated calls (tests, nested invocations) must not stack handlers
    for handler in list(root_logger.handlers):
        if getattr(handler, "_work_log", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._work_log = True  # type: ignore[attr-defined]
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler._work_log = True  # type: ignore[attr-defined]
        root_logger.addHandler(file_handler)
