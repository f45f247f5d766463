import threading
import time
from typing import Callable, Hashable


class LogThrottle:
    """
    Allows one event per key per time window.

    The clock is injectable so tests can drive time explicitly.
    """

    def __init__(self, window_sec: float = 10.0, clock: Callable[[], float] = time.monotonic):
        if window_sec < 0:
            raise ValueError("window_sec must be >= 0")
        self.window_sec = window_sec
        self.clock = clock
        self._last: dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def should_emit(self, key: Hashable = None) -> bool:
        now = self.clock()
        with self._lock:
            last = self._last.get(key)
            if last is not None and (now - last) < self.window_sec:
                return False
            self._last[key] = now
            return True

    def reset(self) -> None:
        with self._lock:
            self._last.clear()
