"""Clock and latency sources used by the runner and step executors."""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Protocol

from stepflow.pipeline.definition import utc_now


class Clock(Protocol):
    """Source of time and simulated latency.

    Injected into the runner so tests can run without real delays.
    """

    def now(self) -> datetime:
        """Current wall-clock time (UTC)."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, for measuring elapsed time."""
        ...

    def sleep(self, seconds: float, cancel_event: threading.Event | None = None) -> bool:
        """Wait for ``seconds``.

        Returns:
            False if ``cancel_event`` was set before the wait finished.
        """
        ...


class SystemClock:
    """Real clock; sleeps are interruptible by a cancel event."""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.perf_counter()

    def sleep(self, seconds: float, cancel_event: threading.Event | None = None) -> bool:
        if cancel_event is None:
            if seconds > 0:
                time.sleep(seconds)
            return True
        if seconds <= 0:
            return not cancel_event.is_set()
        return not cancel_event.wait(seconds)


class InstantClock:
    """Clock that never waits.

    Requested delays are recorded in ``sleeps`` and advance the monotonic
    reading, so elapsed times stay deterministic.
    """

    def __init__(self) -> None:
        self.sleeps: list[float] = []
        self._elapsed = 0.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        with self._lock:
            return self._elapsed

    def sleep(self, seconds: float, cancel_event: threading.Event | None = None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return False
        with self._lock:
            self.sleeps.append(seconds)
            self._elapsed += max(seconds, 0.0)
        return True
