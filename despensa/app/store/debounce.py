from __future__ import annotations

import threading
from typing import Callable, Optional


class Debouncer:
    """
    Run `callback` once, `delay` seconds after the last `schedule()` call.

    Calls inside the window collapse into a single run. `flush()` runs a
    pending callback right away on the caller's thread.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._token = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._token += 1
            timer = threading.Timer(self.delay, self._fire, args=(self._token,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._token:
                return
            self._timer = None
        self._callback()

    def cancel(self) -> bool:
        """Drop the pending run. Returns whether one was pending."""
        with self._lock:
            had_pending = self._timer is not None
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._token += 1
            return had_pending

    def flush(self) -> None:
        if self.cancel():
            self._callback()
