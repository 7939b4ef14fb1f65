from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

DEFAULT_LOGGER_NAME = "svrlscan"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(
    verbose: bool = False,
    logger_name: str = DEFAULT_LOGGER_NAME,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Configure and return the package logger.

    Console output goes to stderr at WARNING, or INFO with ``verbose``. A
    ``log_file`` additionally receives everything from INFO up, whatever the
    console level, so a long unattended batch leaves a full trail behind.
    Repeated calls do not stack handlers.
    """

    logger = logging.getLogger(logger_name)
    console_level = logging.INFO if verbose else logging.WARNING
    logger.setLevel(logging.INFO if log_file is not None else console_level)
    formatter = logging.Formatter(LOG_FORMAT)

    if not any(getattr(h, "_svrlscan_console", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler._svrlscan_console = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    for h in logger.handlers:
        if getattr(h, "_svrlscan_console", False):
            h.setLevel(console_level)

    if log_file is not None:
        target = str(Path(log_file).resolve())
        if not any(getattr(h, "baseFilename", None) == target for h in logger.handlers):
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.INFO)
            logger.addHandler(file_handler)

    return logger
