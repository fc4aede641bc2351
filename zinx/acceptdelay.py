"""Back-off applied between failed or throttled accepts."""

from __future__ import annotations

import time

__all__ = ["AcceptDelay", "MAX_DELAY", "accept_delay"]

MAX_DELAY = 1.0
_INITIAL_DELAY = 0.005


class AcceptDelay:
    """Exponential delay in seconds, starting at 5 ms and capped at 1 s."""

    def __init__(self) -> None:
        self.duration = 0.0

    def delay(self) -> None:
        """Grow the delay, then sleep for it."""
        self.up()
        if self.duration > 0:
            time.sleep(self.duration)

    def reset(self) -> None:
        """Return the delay to zero."""
        self.duration = 0.0

    def up(self) -> None:
        """Grow the delay: 5 ms from zero, otherwise double, never above 1 s."""
        if self.duration == 0:
            self.duration = _INITIAL_DELAY
            return
        self.duration = min(self.duration * 2, MAX_DELAY)


accept_delay = AcceptDelay()