"""Error type and diagnostic output control."""

from __future__ import annotations

import logging
import sys

_LOGGER_NAME = "tatsu"
_logger = logging.getLogger(_LOGGER_NAME)
_logger.propagate = False
_debug_level = 0


class TSSError(Exception):
    """Raised when a TSS request cannot be built, sent or interpreted."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class _StderrHandler(logging.Handler):
    """Write records to whatever ``sys.stderr`` currently is."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record)
            stream = sys.stderr
            stream.write(text if text.endswith("\n") else text + "\n")
            stream.flush()
        except Exception:  # pragma: no cover - mirrors logging's own policy
            self.handleError(record)


_handler = _StderrHandler()
_handler.setFormatter(logging.Formatter("%(message)s"))
_logger.addHandler(_handler)
_logger.setLevel(logging.CRITICAL + 1)


def set_debug_level(level: int) -> None:
    """Set diagnostic verbosity: 0 silent, 1 errors and warnings, 2 and up debug."""
    global _debug_level
    _debug_level = level
    if level >= 2:
        _logger.setLevel(logging.DEBUG)
    elif level >= 1:
        _logger.setLevel(logging.WARNING)
    else:
        _logger.setLevel(logging.CRITICAL + 1)


def get_debug_level() -> int:
    """Return the current diagnostic verbosity."""
    return _debug_level