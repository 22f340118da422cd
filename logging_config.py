from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from utils.paths import LOG_DIR

_LOG_CONFIGURED = False

FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | pid=%(process)d tid=%(threadName)s | %(message)s"
)


def get_logger(
    name: str,
    level: Union[int, str, None] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Return a logger configured for the catalog.

    The first call installs a rotating file handler (DEBUG) and a console
    handler (``level``, INFO by default) on the root logger; later calls only
    look up the named logger.
    """
    global _LOG_CONFIGURED
    if not _LOG_CONFIGURED:
        path = Path(log_file) if log_file else LOG_DIR / "catalog.log"
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=2 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FORMAT))

        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.INFO
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level if level is not None else logging.INFO)
        stream_handler.setFormatter(logging.Formatter(FORMAT))

        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        root.addHandler(file_handler)
        root.addHandler(stream_handler)
        root.debug("Log file: %s", file_handler.baseFilename)
        _LOG_CONFIGURED = True
    return logging.getLogger(name)
