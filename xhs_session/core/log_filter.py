"""Logging filter that drops repeats of the same message inside a time window.

Several coroutines polling the same session tend to log identical lines
("waiting for browser initialization...") in bursts; one copy is enough.
"""

import logging
import time
from collections.abc import Callable


class DuplicateMessageFilter(logging.Filter):
    """Suppress a record whose (logger, level, message) was seen < window_s ago."""

    def __init__(
        self,
        window_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._window_s = window_s
        self._clock = clock
        self._last_seen: dict[tuple[str, int, str], float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        if self._window_s <= 0:
            return True
        key = (record.name, record.levelno, record.getMessage())
        now = self._clock()
        last = self._last_seen.get(key)
        if last is not None and now - last < self._window_s:
            return False
        self._last_seen[key] = now
        self._prune(now)
        return True

    def _prune(self, now: float) -> None:
        expired = [k for k, t in self._last_seen.items() if now - t >= self._window_s]
        for k in expired:
            del self._last_seen[k]
