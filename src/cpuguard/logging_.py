"""Logging setup for the cpuguard command."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_file: str | Path | None = None) -> None:
    """
    Configure the root logger.

    A stderr handler is added only when the root logger has none yet. The
    rotating file handler is added whenever ``log_file`` is given and not
    already attached, so an existing console setup never drops it.

    Args:
        level: Level for the root logger and the handlers added here.
        log_file: Optional path of a log file, rotated at 2 MB.
    """
    root = logging.getLogger()
    root.setLevel(level)
    fmt = logging.Formatter(LOG_FORMAT)

    if not root.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(fmt)
        root.addHandler(ch)

    if log_file is None:
        return

    path = str(Path(log_file).resolve())
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == path:
            handler.setLevel(level)
            return

    fh = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root.addHandler(fh)
