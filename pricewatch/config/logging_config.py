# pricewatch/config/logging_config.py

"""Logging for pricewatch processes.

``setup_logging()`` is called once by ``main.py``.  Everything logged
under the ``pricewatch`` namespace goes to a fresh file per process
start (``logs/run_<YYYYmmdd_HHMMSS>.log``) at DEBUG, and to stderr at
``PRICEWATCH_LOG_LEVEL`` (WARNING unless set).  A scheduler running for
weeks therefore keeps writing to the file it opened at start-up.

File records carry the thread name: per-product work runs in
``asyncio.to_thread`` workers, and the thread column is what tells two
products' interleaved lines apart.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pricewatch.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _with_format(
    handler: logging.Handler, level: int, fmt: str,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATE_FORMAT))
    return handler


def _resolve_level(level: str | int | None) -> int:
    """Turn ``"info"``, ``20`` or ``None`` (use settings) into a level."""
    if level is None:
        level = Settings.LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)
    return resolved


def setup_logging(console_level: str | int | None = None) -> Path:
    """Attach the per-run file and stderr handlers to ``pricewatch``.

    Safe to call more than once: if handlers are already attached the
    logger is left alone and only a path is returned.
    """
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = Settings.LOGS_DIR / f"run_{stamp}.log"

    stderr_level = _resolve_level(console_level)
    project_logger = logging.getLogger("pricewatch")
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    project_logger.addHandler(_with_format(
        logging.FileHandler(log_file, encoding="utf-8"),
        logging.DEBUG,
        _FILE_FORMAT,
    ))
    project_logger.addHandler(_with_format(
        logging.StreamHandler(sys.stderr),
        stderr_level,
        _STDERR_FORMAT,
    ))
    project_logger.debug("Writing this run's log to %s", log_file)
    return log_file
