"""Clock collaborator - the only source of `now` for the engines."""

import logging
import time
from typing import Protocol

from ..errors import ClockError

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Anything with a ``now()`` returning a unix timestamp in seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Explicitly advanced clock for tests and scenario replay.

    ``advance`` moves relative to now, ``increase_to`` jumps to an absolute
    timestamp. Time never moves backwards.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ClockError("Clock cannot start before the epoch")
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by `seconds` and return the new timestamp."""
        if seconds < 0:
            raise ClockError(f"Cannot advance clock by negative {seconds}s")
        self._now += int(seconds)
        logger.debug("Clock advanced %ds to %d", seconds, self._now)
        return self._now

    def increase_to(self, timestamp: int) -> int:
        """Jump to an absolute timestamp (equal to now is allowed)."""
        if timestamp < self._now:
            raise ClockError(
                f"Cannot move clock back from {self._now} to {timestamp}"
            )
        self._now = int(timestamp)
        logger.debug("Clock set to %d", self._now)
        return self._now
