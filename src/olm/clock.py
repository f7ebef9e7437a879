"""Time source for polling loops.

Every loop in this package reads time and sleeps through a `Clock` so tests
can advance time without real waiting.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source with a blocking sleep."""

    def now(self) -> float:
        """Return seconds from an arbitrary fixed origin."""
        ...

    def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""
        ...


class SystemClock:
    """Clock backed by time.monotonic/time.sleep."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
