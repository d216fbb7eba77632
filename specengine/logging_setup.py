"""Loggers of the engine.

Every logger shares the handlers installed by `init_logger`: a colored
stderr handler (stdout is reserved for completion output) and, in debug
mode, an optional log file.
"""

import logging
import os

from .ansi import LEVEL_STYLES, RESET, sgr, should_colorize

__all__ = [
    "LogObjects",
    "get_logger",
    "init_logger",
    "is_debug",
    "set_debug",
]

SCREEN_FORMAT = r"%(message)s"
DEBUG_SCREEN_FORMAT = r"%(name)25s - %(message)s // %(filename)s:%(lineno)d"
FILE_FORMAT = r"%(asctime)s [%(levelname)s] %(name)s :: %(message)s"


class _DebugState:
    value: bool = bool(os.environ.get("SPECENGINE_DEBUG"))


_debug_state = _DebugState()


def is_debug() -> bool:
    """Return the current debug state."""
    return _debug_state.value


def set_debug(value: bool) -> None:
    """Set the debug state (SPECENGINE_DEBUG sets it at import time)."""
    _debug_state.value = value


class LogObjects:
    """Handlers shared by every logger."""

    handlers: list[logging.Handler] = []


class ScreenLogFormatter(logging.Formatter):
    """Formats records for the terminal, colored by level."""

    def __init__(self) -> None:
        super().__init__()
        log_format = DEBUG_SCREEN_FORMAT if is_debug() else SCREEN_FORMAT
        color = should_colorize()
        self._plain = logging.Formatter(log_format)
        self._by_level: dict[int, logging.Formatter] = {}
        for level, codes in LEVEL_STYLES.items():
            prefix, suffix = (sgr(*codes), RESET) if color else ("", "")
            self._by_level[level] = logging.Formatter(prefix + log_format + suffix)

    def format(self, record: logging.LogRecord) -> str:
        return self._by_level.get(record.levelno, self._plain).format(record)


def init_logger(filename: str | None = None, force_debug: bool = False) -> None:
    """Install the shared handlers.

    Args:
        filename: Also log to this file
        force_debug: Switch debug mode on
    """
    if force_debug:
        set_debug(True)

    LogObjects.handlers.clear()
    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT))
        LogObjects.handlers.append(file_handler)
    screen = logging.StreamHandler()
    screen.setFormatter(ScreenLogFormatter())
    LogObjects.handlers.append(screen)


def get_logger(name: str = "specengine", level: int | None = None) -> logging.Logger:
    """Return the logger `name` attached to the shared handlers.

    Without `level`, debug mode decides between DEBUG and WARNING.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else (logging.DEBUG if is_debug() else logging.WARNING))
    logger.propagate = False
    for handler in LogObjects.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    return logger
