"""Activity log for session and goal events — timestamped file + colored echo."""

from __future__ import annotations

import os
import re
import sys
from datetime import datetime


# ── ANSI codes per event kind ───────────────────────────────

TIMESTAMP = "\033[90m"
FAILED = "\033[31m"
FINISHED = "\033[32m"
PAUSED = "\033[33m"
RESUMED = "\033[36m"
SWITCHED = "\033[35m"
GOAL = "\033[34m"
QUIET = "\033[2m"
RESET = "\033[0m"

# Engine messages lead with one of these markers
_MARKERS = {
    "✗": FAILED,
    "✓": FINISHED,
    "⏸": PAUSED,
    "▶": RESUMED,
    "▸": SWITCHED,
}

# Unmarked messages, matched anywhere in the text
_KEYWORDS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\bgoal:"), GOAL),
    (re.compile(r"session discarded|deleted section"), QUIET),
]


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("PRACTICETRACK_NO_COLOR"):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{RESET}"


def _detect_color(message: str) -> str | None:
    """Color for a message: its leading marker first, then known keywords."""
    marker = message.lstrip()[:1]
    if marker in _MARKERS:
        return _MARKERS[marker]
    for pattern, color in _KEYWORDS:
        if pattern.search(message):
            return color
    return None


class ActivityLog:
    """Appends every message to an optional log file and optionally echoes it.

    With neither a path nor echo the log is silent, which is what library
    callers get by default.
    """

    def __init__(self, path: str | None = None, echo: bool = False):
        self.path = path
        self._file = None
        if path:
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._file = open(path, "a")
        self._echo = echo
        self._use_color = _color_enabled()

    def log(self, message: str) -> None:
        stamp = f"[{datetime.now().strftime('%H:%M:%S')}]"
        if self._file is not None:
            self._file.write(f"{stamp} {message}\n")
            self._file.flush()
        if not self._echo:
            return

        if self._use_color:
            color = _detect_color(message)
            print(colorize(stamp, TIMESTAMP), colorize(message, color) if color else message)
        else:
            print(stamp, message)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
