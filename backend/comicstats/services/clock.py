from __future__ import annotations

import time


class Clock:
    """Source of the current time in unix seconds."""

    def time(self) -> float:
        raise NotImplementedError

    def now(self) -> int:
        return int(self.time())


class SystemClock(Clock):
    def time(self) -> float:
        return time.time()
