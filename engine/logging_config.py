"""Logging setup for the Galaxy Piano engine.

Every line is a flat run of key=value pairs so playback problems can be
grepped by step, track or client. Values containing spaces are quoted.
"""

import logging
import sys
from typing import Any, Optional

from engine.config import get_config

# Packages whose level follows GALAXY_LOG_LEVEL
_APP_PACKAGES = ("engine", "theory")

# Third-party loggers pinned regardless of the configured level
_LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "fastapi": logging.INFO,
}

# Passed through `extra=` by the scheduler, sequencer and note stream
_CONTEXT_FIELDS = ("step", "track_index", "note_count", "client_id")


def _quote(value: Any) -> str:
    text = str(value)
    if not text or any(c.isspace() or c in '="' for c in text):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class StructuredFormatter(logging.Formatter):
    """Render records as `key=value` pairs followed by any traceback.

    Context fields are only written when the caller supplied them.
    """

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        fields.update(
            (name, getattr(record, name)) for name in _CONTEXT_FIELDS if hasattr(record, name)
        )

        line = " ".join(f"{key}={_quote(value)}" for key, value in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: Optional[str] = None) -> logging.Handler:
    """Install one stdout handler on the root logger.

    Handlers from an earlier call are replaced, so calling this again
    (e.g. on app reload) does not duplicate lines.

    Args:
        level: Level name for the engine and theory packages; defaults to
            the configured GALAXY_LOG_LEVEL

    Returns:
        The installed handler
    """
    level_no = logging.getLevelName((level or get_config().log_level).upper())

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_no)
    handler.setFormatter(StructuredFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    root.addHandler(handler)

    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
    for name in _APP_PACKAGES:
        logging.getLogger(name).setLevel(level_no)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
