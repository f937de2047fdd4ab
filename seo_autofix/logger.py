# === FILE: seo_autofix/logger.py ===
"""Logging for **SEO Autofix**.

Every module logs through the shared :data:`logger`::

    from seo_autofix.logger import logger
    logger.info("Batch %s started", batch_id)

The CLI calls :func:`init_logging` once per invocation to pick the level,
the console stream and an optional rotating log file.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, TextIO, Union

_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "SEOAutofix"
_MAX_LOG_BYTES: Final[int] = 5 * 1024 * 1024
_LOG_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]


def _handlers(fmt: str, stream: TextIO | None, log_file: str | Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(
                filename=str(log_file),
                maxBytes=_MAX_LOG_BYTES,
                backupCount=_LOG_BACKUPS,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(fmt)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Replace the handlers of the project logger.

    *stream* defaults to stdout; the CLI passes stderr so that its JSON
    output stays clean. *log_file* adds a rotating file next to the console.
    """
    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(level)
    for handler in list(lg.handlers):
        lg.removeHandler(handler)
        handler.close()
    for handler in _handlers(log_format, stream, log_file):
        lg.addHandler(handler)
    lg.propagate = False
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging"]
