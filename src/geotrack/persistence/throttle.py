from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class Throttler:
    """Run an action at most once per interval; calls inside the interval are dropped.

    The check and the timestamp update share one lock, so two near-simultaneous
    callers cannot both pass.
    """

    def __init__(self, interval_s: float = 0.5, clock: Callable[[], float] = time.monotonic):
        self.interval_s = float(interval_s)
        self._clock = clock
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def _acquire_slot(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._last is not None and (now - self._last) < self.interval_s:
                return False
            self._last = now
            return True

    def run(self, action: Callable[[], object]) -> bool:
        """Run ``action`` if the gate is open. Returns whether it ran."""
        if not self._acquire_slot():
            return False
        action()
        return True
