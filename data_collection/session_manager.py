"""Recording session controller.

Owns the single optional :class:`CaptureHandle` and is the only place that
moves between ``IDLE`` and ``RECORDING``.  Control messages delivered on bus
dispatch threads are queued and consumed in arrival order by
:meth:`SessionController.spin_once`; the execution context never runs two
ticks of the same unit at once, so the queue has a single consumer.  Every
transition, queued or direct, runs under one lock, which is what makes
:meth:`reset` atomic with respect to queued signals.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from config.paths import PathNamer
from core.bus import Bus, Subscription
from core.errors import DoubleTransition, RecorderError
from core.events import ControlSignal, type_name_of
from sdk.config import RecordingConfig

from .capture_session import CaptureHandle, CaptureSession
from .topic_filter import resolve_topics

logger = logging.getLogger(__name__)

_ENABLE = "enable"
_RESET = "reset"


class SessionState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"


class SessionController:
    """Start, stop and restart capture sessions."""

    def __init__(
        self,
        cfg: RecordingConfig,
        capture: CaptureSession,
        namer: Optional[PathNamer] = None,
        *,
        name: str = "BagRecorder",
        queue_size: int = 64,
    ) -> None:
        self.name = name
        self.cfg = cfg
        self.capture = capture
        self.namer = namer or PathNamer()

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._handle: Optional[CaptureHandle] = None
        self._signals: "queue.Queue[Tuple[str, Any]]" = queue.Queue(maxsize=queue_size)
        self._subscription: Optional[Subscription] = None
        self._bus: Optional[Bus] = None

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.RECORDING

    @property
    def pending_signals(self) -> int:
        return self._signals.qsize()

    def get_active_handle(self) -> Optional[CaptureHandle]:
        return self._handle

    # ------------------------------------------------------------------
    # Direct transitions
    # ------------------------------------------------------------------
    def start(self) -> Optional[CaptureHandle]:
        """Begin a capture session unless one is already running."""
        with self._lock:
            if self._state is SessionState.RECORDING:
                logger.debug("start() ignored: already recording to %s", self._handle.uri)
                return self._handle
            return self._begin()

    def stop(self) -> None:
        """End the running capture session, if any."""
        with self._lock:
            if self._state is SessionState.IDLE:
                logger.debug("stop() ignored: already idle")
                return
            self._end()

    def reset(self) -> Optional[CaptureHandle]:
        """Stop and restart as one step; queued signals wait until it is done.

        A session that fails to close does not prevent the next one from
        starting; the close error is raised once recording has resumed.
        """
        with self._lock:
            logger.info("Resetting bag recording")
            try:
                self.stop()
            except RecorderError as exc:
                logger.error("Previous session did not close cleanly, starting a new one anyway: %s", exc)
                self.start()
                raise
            return self.start()

    # ------------------------------------------------------------------
    # Control channel
    # ------------------------------------------------------------------
    def attach(self, bus: Bus) -> None:
        """Subscribe to the control topic on ``bus``."""
        bus.advertise(self.cfg.control_topic, type_name_of(ControlSignal(enable_recording=False)))
        self._subscription = bus.subscribe(self.cfg.control_topic, self.handle_control)
        self._bus = bus

    def handle_control(self, topic: str, msg: Any) -> None:
        """Bus callback: queue the requested state for the consumer."""
        try:
            signal = msg if isinstance(msg, ControlSignal) else ControlSignal.model_validate(msg)
        except ValidationError as exc:
            logger.error("Malformed control message on %s: %s", topic, exc)
            return
        logger.info("Message Received (enable_recording=%s)", signal.enable_recording)
        self._enqueue((_ENABLE, signal.enable_recording))

    def request_reset(self) -> None:
        self._enqueue((_RESET, None))

    def _enqueue(self, cmd: Tuple[str, Any]) -> None:
        try:
            self._signals.put_nowait(cmd)
        except queue.Full:
            logger.error("Control queue full (%d pending); dropped %s", self._signals.maxsize, cmd)

    def spin_once(self) -> int:
        """Process every queued signal in arrival order; returns how many."""
        handled = 0
        while True:
            try:
                cmd = self._signals.get_nowait()
            except queue.Empty:
                return handled
            try:
                self._process(cmd)
            finally:
                self._signals.task_done()
            handled += 1

    def _process(self, cmd: Tuple[str, Any]) -> None:
        kind, enable = cmd
        with self._lock:
            try:
                if kind == _RESET:
                    self.reset()
                elif enable and self._state is SessionState.IDLE:
                    self._begin()
                    logger.info("Message Received: starting new recording")
                elif not enable and self._state is SessionState.RECORDING:
                    self._end()
                    logger.info("Message Received: stopping existing recording")
                else:
                    logger.debug("Control signal matches current state (%s); nothing to do", self._state.value)
            except RecorderError:
                # leaves a well-defined IDLE state; a later enable retries
                logger.exception("Control transition %s failed; controller is %s", cmd, self._state.value)
            except Exception:
                # the remaining queued signals still get processed
                logger.exception("Unexpected error handling %s; controller is %s", cmd, self._state.value)

    def close(self) -> None:
        """Detach from the bus and stop recording."""
        if self._bus is not None and self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None
        self.stop()

    # ------------------------------------------------------------------
    # State machine internals
    # ------------------------------------------------------------------
    def _begin(self) -> CaptureHandle:
        if self._state is not SessionState.IDLE or self._handle is not None:
            raise DoubleTransition("begin requested while a capture session is active")
        cfg = self.cfg
        logger.info("Data Folder: %s", cfg.data_folder)
        logger.info("File Duration: %d seconds", cfg.file_duration)
        logger.info("Logged Topics: %s", " ".join(cfg.logged_topics))

        scope = resolve_topics(cfg.logged_topics)
        path = self.namer.next_path(cfg.data_folder)
        logger.info("Storage Path: %s", path)
        try:
            handle = self.capture.begin(cfg, scope, path)
        except RecorderError as exc:
            logger.error("Could not start recording to %s: %s", path, exc)
            raise
        self._handle = handle
        self._state = SessionState.RECORDING
        return handle

    def _end(self) -> None:
        if self._state is not SessionState.RECORDING or self._handle is None:
            raise DoubleTransition("end requested while idle")
        handle, self._handle = self._handle, None
        self._state = SessionState.IDLE
        try:
            self.capture.end(handle)
        except Exception:
            logger.error("Capture session %s did not release cleanly", handle.session_id)
            raise


__all__ = ["SessionState", "SessionController"]
