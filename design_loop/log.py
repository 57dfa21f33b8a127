#!/usr/bin/env python3
"""
Logging setup for design loop applications.

The library itself only creates module loggers; call configure_logging()
from an application entry point to get JSON-line output.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
    '"module": "%(module)s", "message": "%(message)s"}'
)


def configure_logging(level: str | int = "INFO", log_file: Path | str | None = None) -> logging.Logger:
    """
    Attach a JSON-line handler to the design_loop logger.

    Args:
        level: Logging level name or number
        log_file: File to append to (parent directories are created);
                  stderr when None

    Returns:
        The configured design_loop logger
    """
    logger = logging.getLogger("design_loop")
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for existing in list(logger.handlers):
        if getattr(existing, "_design_loop", False):
            logger.removeHandler(existing)
            existing.close()
    handler._design_loop = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "LOG_FORMAT"]
