"""Terminal colors for the screen log and the `specengine complete` output.

Escape sequences are only written to terminals. NO_COLOR disables them,
FORCE_COLOR enables them for any stream.
"""

import logging
import os
import sys
from typing import TextIO

__all__ = ["LEVEL_STYLES", "RESET", "CandidateStyles", "colorize", "sgr", "should_colorize"]

CSI = "\x1b["
RESET = f"{CSI}0m"

BOLD = "1"
DIM = "2"
RED = "31"
YELLOW = "33"
CYAN = "36"

LEVEL_STYLES: dict[int, tuple[str, ...]] = {
    logging.WARNING: (YELLOW, DIM),
    logging.ERROR: (RED, DIM),
    logging.CRITICAL: (RED, BOLD),
}


class CandidateStyles:
    """Styles of the three columns printed by `specengine complete`."""

    TEXT = (BOLD,)
    KIND = (CYAN,)
    DESCRIPTION = (DIM,)


def sgr(*codes: str) -> str:
    """Return the escape sequence selecting `codes`, or "" without codes."""
    return f"{CSI}{';'.join(codes)}m" if codes else ""


def should_colorize(stream: TextIO | None = None) -> bool:
    """Tell whether escape sequences should be written to `stream` (stderr by default)."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    isatty = getattr(sys.stderr if stream is None else stream, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, *codes: str) -> str:
    """Wrap `text` with the given codes, leave it untouched without codes."""
    if not codes:
        return text
    return f"{sgr(*codes)}{text}{RESET}"
