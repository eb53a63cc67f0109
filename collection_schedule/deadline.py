"""
This module defines the overall time budget shared by every wait in a run.
"""
import math
import time
from typing import Callable, Optional


class RunDeadline:
    """Tracks how much of the run's time budget is left."""

    def __init__(self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> float:
        """Seconds left before the run must stop; infinite when unbounded."""
        if self._expires_at is None:
            return math.inf
        return max(self._expires_at - self._clock(), 0.0)

    def expired(self) -> bool:
        return self.remaining() <= 0

    def clamp(self, timeout: float) -> float:
        """Returns the smaller of a wait's own timeout and the remaining budget."""
        return max(min(timeout, self.remaining()), 0.0)
