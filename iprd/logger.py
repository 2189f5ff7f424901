"""Coloured line logger writing to standard output."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

DEBUG_COLOR = "\033[0;36m{}\033[0m"
INFO_COLOR = "\033[1;33m{}\033[0m"
WARN_COLOR = "\033[0;37m{}\033[0m"
ERROR_COLOR = "\033[1;31m{}\033[0m"


def sanitize_message(msg: str) -> str | None:
    """Return msg without one trailing newline, or None when it is empty."""
    return msg.removesuffix("\n") if msg else None


class IPRLogger:
    """Prefix- and timestamp-stamped logger with coloured levels."""

    def __init__(self, stream: TextIO | None = None, prefix: str = "iprd: ") -> None:
        self._stream = stream
        self.prefix = prefix
        self._lock = threading.Lock()

    def set_prefix(self, prefix: str) -> None:
        self.prefix = prefix

    def _print(self, color: str, value: object) -> str:
        text = color.format(value)
        stream = self._stream or sys.stdout
        with self._lock:
            stream.write(f"{self.prefix}{time.strftime('%Y/%m/%d %H:%M:%S')} {text}\n")
            stream.flush()
        return text

    def debug(self, msg: str) -> None:
        self._print(DEBUG_COLOR, msg)

    def info(self, msg: str) -> None:
        if (cleaned := sanitize_message(msg)) is not None:
            self._print(INFO_COLOR, cleaned)

    def warn(self, msg: str) -> None:
        if (cleaned := sanitize_message(msg)) is not None:
            self._print(WARN_COLOR, cleaned)

    def error(self, err: object) -> None:
        self._print(ERROR_COLOR, err)

    def fatal(self, err: object) -> None:
        """Log err and exit with status 1."""
        self._print(ERROR_COLOR, err)
        raise SystemExit(1)

    def panic(self, err: object) -> None:
        """Log err and raise it as a RuntimeError."""
        raise RuntimeError(self._print(ERROR_COLOR, err))