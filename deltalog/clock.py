"""Sources of the current time."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """A source of the current time that can also wait."""

    @abstractmethod
    def now_in_millis(self) -> int:
        """Milliseconds since the epoch."""

    @abstractmethod
    def now_in_nanos(self) -> int:
        """Nanoseconds since the epoch."""

    @abstractmethod
    def wait_till(self, target: int) -> int:
        """Wait until ``target`` milliseconds since the epoch; return the time then."""


class SystemClock(Clock):
    """The system's wall clock."""

    def now_in_millis(self) -> int:
        return time.time_ns() // 1_000_000

    def now_in_nanos(self) -> int:
        return time.time_ns()

    def wait_till(self, target: int) -> int:
        remaining = target - self.now_in_millis()
        if remaining > 0:
            time.sleep(remaining / 1000)
        return self.now_in_millis()