# gradelab/security/rate_limit.py
"""
In-memory fixed-window rate limiter for sensitive endpoints (login, register).

State lives in the process that created the limiter. Several gunicorn workers
or several hosts each keep their own counters, so the effective limit is
``max_attempts`` per identifier per process. That is a known property of this
limiter; a shared store would be needed to lift it.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """
    Fixed window per identifier, opened by its first attempt.

    Once ``now - started_at > window_seconds`` the window restarts and the
    attempt counts as the first of a new one. Bursts straddling a window
    boundary can reach up to twice the limit; that is accepted.
    """

    def __init__(self, max_attempts: int = 5, window_seconds: float = 15 * 60,
                 clock: Callable[[], float] = time.monotonic, sweep_every: int = 256):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._sweep_every = max(1, sweep_every)
        self._calls = 0
        self._lock = threading.Lock()

    def is_allowed(self, identifier: str) -> bool:
        """Record one attempt and say whether it is within the limit."""
        now = self._clock()
        with self._lock:
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep(now)
            window = self._windows.get(identifier)
            if window is None or now - window.started_at > self.window_seconds:
                self._windows[identifier] = _Window(started_at=now, count=1)
                return True
            if window.count >= self.max_attempts:
                return False
            window.count += 1
            return True

    def _sweep(self, now: float) -> None:
        # caller holds the lock
        expired = [key for key, w in self._windows.items() if now - w.started_at > self.window_seconds]
        for key in expired:
            del self._windows[key]

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)

    def retry_after(self, identifier: str) -> int:
        """Whole seconds until the identifier's window closes, 0 if not blocked."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or window.count < self.max_attempts:
                return 0
            remaining = window.started_at + self.window_seconds - now
        return max(0, math.ceil(remaining))

    @classmethod
    def from_setting(cls, setting) -> "RateLimiter":
        max_attempts, window_seconds = setting
        return cls(max_attempts=max_attempts, window_seconds=window_seconds)
