"""Logger hierarchy shared by the generator, its CLI and its tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_ROOT = "datacompat"
_CONSOLE_FORMAT = "[datacompat] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``datacompat.<name>``, or the root generator logger."""
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route generator logs to stderr and, when given, to ``log_file``.

    Calling this again replaces the previous handlers, so a second CLI run in
    the same process does not print every record twice.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level, _CONSOLE_FORMAT))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(
            _handler(logging.FileHandler(log_file, encoding="utf-8"), level, _FILE_FORMAT)
        )
    return logger


__all__ = ["configure_logging", "get_logger"]
