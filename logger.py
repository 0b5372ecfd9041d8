"""
logger.py
---------
Logging for the schema migrator.

Every module logs through a child of the ``schema_migrator`` logger obtained
with ``get_logger(__name__)``. The root is configured once, at import time,
from ``LOG_LEVEL`` and ``LOG_FILE`` (see ``config.py``).

Levels used across the package:

    ========  ==========================================================
    TRACE     one line per row queued during a data transfer (level 5)
    DEBUG     every statement executed, every catalog type not recognised
    INFO      per schema / table / column / index: created, skipped, copied
    WARNING   mixed-case identifiers, failed connection attempts
    ERROR     driver errors and tables that failed inside ``migrate_schema``
    ========  ==========================================================

Set ``LOG_LEVEL=TRACE`` to see rows. The optional file handler always records
everything down to TRACE, whatever the console level.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, TRACE, get_log_level

_ROOT_LOGGER_NAME = "schema_migrator"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

logging.addLevelName(TRACE, "TRACE")

_configured = False


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
    return handler


def _configure_root_logger() -> None:
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    level = get_log_level()
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), level, _CONSOLE_FORMAT))

    log_file = CONFIG.migration.log_file
    if not log_file:
        root.setLevel(level)
        return

    # the root must pass TRACE records for the file handler to see them
    root.setLevel(min(level, TRACE))
    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(log_path, encoding="utf-8"), TRACE, _FILE_FORMAT))
    except OSError as exc:
        root.setLevel(level)
        root.warning("Could not create log file '%s': %s", log_path, exc)


_configure_root_logger()


def get_logger(name: str) -> logging.Logger:
    """
    Return a child of the ``schema_migrator`` logger.

    Example::

        log = get_logger(__name__)
        log.info("Created table %s", name)
        log.log(TRACE, "%d row(s) queued for %s", count, name)
    """
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
