"""Level-filtered logging in the style of ``[LEVEL] message`` lines."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_COLORS = {"WARNING": "\x1b[33m", "ERROR": "\x1b[31m"}
_RESET = "\x1b[0m"


def _sprintf(fmt: str, args: tuple[Any, ...]) -> str:
    if not args:
        return fmt
    fmt = fmt.replace("%v", "%s").replace("%t", "%s").replace("%q", "%r")
    return fmt % args


def _level_of(line: str) -> str:
    start = line.find("[")
    if start >= 0:
        end = line.find("]", start)
        if end >= 0:
            return line[start + 1 : end]
    return ""


@dataclass
class LevelFilter:
    """A writer that drops lines below a minimum level and colours warnings and errors.

    Lines without a recognised ``[LEVEL]`` tag always pass.
    """

    writer: Any
    min_level: str = "INFO"
    levels: tuple[str, ...] = LEVELS
    color: bool | None = None
    _bad_levels: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        bad = []
        for level in self.levels:
            if level == self.min_level:
                break
            bad.append(level)
        self._bad_levels = frozenset(bad)

    def _use_color(self) -> bool:
        if self.color is not None:
            return self.color
        isatty = getattr(self.writer, "isatty", None)
        return bool(isatty and isatty())

    def check(self, line: str) -> bool:
        """Tell whether a line passes the filter."""
        return _level_of(line) not in self._bad_levels

    def write(self, line: str) -> int:
        """Write a line if it passes the filter; return its length either way."""
        if self.check(line):
            out = line
            code = _COLORS.get(_level_of(line))
            if code and self._use_color():
                body = line[:-1] if line.endswith("\n") else line
                out = code + body + _RESET + ("\n" if line.endswith("\n") else "")
            self.writer.write(out)
        return len(line)


class Logger:
    """A minimal line logger that stamps each line with the local time."""

    def __init__(self, output: Any = None, prefix: str = "", timestamps: bool = True) -> None:
        self._output = output
        self.prefix = prefix
        self.timestamps = timestamps
        self._lock = threading.Lock()

    def set_output(self, output: Any) -> None:
        """Send further lines to ``output``; ``None`` discards them."""
        self._output = output

    def _emit(self, message: str) -> None:
        if self._output is None:
            return
        stamp = time.strftime("%Y/%m/%d %H:%M:%S ") if self.timestamps else ""
        line = self.prefix + stamp + message
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            self._output.write(line)

    def printf(self, fmt: str, *args: Any) -> None:
        """Log a %-formatted message."""
        self._emit(_sprintf(fmt, args))

    def println(self, message: Any) -> None:
        """Log a message as it is."""
        self._emit(f"{message}\n")


class _Stderr:
    def write(self, text: str) -> int:
        return sys.stderr.write(text)

    def isatty(self) -> bool:
        isatty = getattr(sys.stderr, "isatty", None)
        return bool(isatty and isatty())


def new_logger() -> Logger:
    """Create a logger whose output is discarded until one is set."""
    return Logger()


def new_log_filter(writer: Any, min_level: str) -> LevelFilter:
    """Create a level filter writing to ``writer``."""
    return LevelFilter(writer=writer, min_level=min_level)


_common_logger = new_logger()
_common_logger.set_output(new_log_filter(_Stderr(), "INFO"))


def set_logger(logger: Logger) -> None:
    """Replace the logger used by :func:`log`."""
    global _common_logger
    _common_logger = logger


def log(fmt: str, *args: Any) -> None:
    """Log a message with the shared logger."""
    _common_logger.printf(fmt, *args)