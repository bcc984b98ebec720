from __future__ import annotations

import time


class DeadlineExceeded(Exception):
    """The operation ran past its deadline and must not be persisted."""


class Deadline:
    """Cancellation token for a request with a time limit.

    Long operations call ``check()`` between steps and immediately before
    committing; an expired deadline raises ``DeadlineExceeded`` so the caller
    rolls back instead of writing a result nobody is waiting for.
    """

    def __init__(self, seconds: float, clock=time.monotonic):
        self._clock = clock
        self.seconds = float(seconds)
        self.expires_at = clock() + self.seconds
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def remaining(self) -> float:
        return max(self.expires_at - self._clock(), 0.0)

    @property
    def expired(self) -> bool:
        return self._cancelled or self._clock() >= self.expires_at

    def check(self) -> None:
        if self.expired:
            raise DeadlineExceeded(f"operation exceeded {self.seconds:g}s")
