"""Periodic trigger that asks a controller to rotate its capture session."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ResetTicker:
    """Call ``request_reset`` every ``interval`` seconds on a daemon thread.

    ``request_reset`` is expected to enqueue the reset on the controller's
    serialized control path, never to run the transition itself.
    """

    def __init__(self, request_reset: Callable[[], None], interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0 seconds")
        self._request_reset = request_reset
        self._interval = float(interval)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="bag-reset-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.ticks += 1
            logger.info("Reset tick %d", self.ticks)
            self._request_reset()
