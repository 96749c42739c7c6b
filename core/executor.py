"""Multi-threaded execution context for runnable units.

A *unit* is any object with a ``name`` attribute and a ``spin_once()``
method.  Registered units are ticked by :meth:`ExecutionContext.spin` on the
worker pool; bus deliveries and other callbacks are scheduled on the same
pool through :meth:`ExecutionContext.submit`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Unit(Protocol):
    name: str

    def spin_once(self) -> None: ...


class ExecutionContext:
    """Registry of units plus the thread pool that drives them."""

    def __init__(self, num_threads: int = 4, tick_interval: float = 0.1) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max(1, num_threads), thread_name_prefix="bagrec")
        self._tick_interval = tick_interval
        self._lock = threading.Lock()
        self._units: Dict[int, Unit] = {}
        self._ticking: Dict[int, Future] = {}
        self._shutdown = threading.Event()

    # ------------------------------------------------------------------
    # Unit registry
    # ------------------------------------------------------------------
    def add_unit(self, unit: Unit) -> None:
        with self._lock:
            if id(unit) in self._units:
                raise ValueError(f"unit '{unit.name}' is already registered")
            self._units[id(unit)] = unit
        logger.debug("Added unit %s", unit.name)

    def remove_unit(self, unit: Unit) -> None:
        with self._lock:
            if self._units.pop(id(unit), None) is None:
                raise ValueError(f"unit '{unit.name}' is not registered")
            self._ticking.pop(id(unit), None)
        logger.debug("Removed unit %s", unit.name)

    def has_unit(self, unit: Unit) -> bool:
        with self._lock:
            return id(unit) in self._units

    @property
    def units(self) -> List[Unit]:
        with self._lock:
            return list(self._units.values())

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def submit(self, fn: Callable[..., Any], *args: Any) -> Optional[Future]:
        if self._shutdown.is_set():
            return None
        try:
            future = self._pool.submit(self._guarded, fn, *args)
        except RuntimeError:
            # pool shut down between the check and the submit
            return None
        return future

    @staticmethod
    def _guarded(fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception:
            logger.exception("Callback %r failed", fn)
            raise

    def spin_once(self) -> None:
        """Schedule ``spin_once`` of every unit not already being ticked."""

        with self._lock:
            pending = [
                (key, unit)
                for key, unit in self._units.items()
                if key not in self._ticking or self._ticking[key].done()
            ]
            for key, unit in pending:
                future = self.submit(unit.spin_once)
                if future is not None:
                    self._ticking[key] = future

    def spin(self) -> None:
        """Tick units until :meth:`shutdown` is called."""

        while not self._shutdown.is_set():
            self.spin_once()
            self._shutdown.wait(self._tick_interval)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown.is_set()

    def shutdown(self, wait: bool = True) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()
        self._pool.shutdown(wait=wait)
        logger.debug("Execution context shut down")


__all__ = ["ExecutionContext", "Unit"]
