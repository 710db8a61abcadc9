"""
Logging utilities for the safetrack controller.

Every module logs through `get_logger(__name__)`, which prints to the console
via Rich. Long-running commands call `enable_json_log` to also keep a
structured JSON-lines record of everything logged under `safetrack`.
"""

import json
import logging
from pathlib import Path

from rich.logging import RichHandler

ROOT_LOGGER = "safetrack"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record, with the traceback when there is one.
    """
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def get_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Return a logger with a Rich console handler attached once.

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string), defaults to INFO.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        console_handler = RichHandler(rich_tracebacks=True)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)
    return logger


def enable_json_log(path: str | Path, level: int | str = logging.INFO) -> logging.Handler:
    """
    Append JSON-lines records from every `safetrack.*` logger to `path`.

    Parameters
    ----------
    path
        Log file; created if missing, appended to otherwise.
    level
        Minimum level written to the file.

    Returns
    -------
    logging.Handler
        The attached handler, so callers can detach and close it.
    """
    file_handler = logging.FileHandler(Path(path), mode="a", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(JSONFormatter())
    logging.getLogger(ROOT_LOGGER).addHandler(file_handler)
    return file_handler
