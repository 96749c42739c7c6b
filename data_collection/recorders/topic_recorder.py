"""Topic recorder.

The :class:`TopicRecorder` subscribes to bus topics and hands every message
to a :class:`~data_collection.event_writer.BagWriter`.  It is registered as a
unit with the execution context: message callbacks run on the context's
worker threads, and ``spin_once`` performs topic discovery when recording
all topics.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet

from core.bus import Bus, Subscription
from core.events import message_dump, type_name_of
from sdk.ids import now_utc_ns

from ..event_writer import BagWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordOptions:
    """What to record and how often to look for new topics."""

    all_topics: bool
    topics: FrozenSet[str] = frozenset()
    serialization_format: str = "json"
    topic_polling_interval: float = 1.0


class TopicRecorder:
    """Record bus traffic into a bag writer."""

    def __init__(self, bus: Bus, writer: BagWriter, options: RecordOptions, name: str = "topic_recorder") -> None:
        self.name = name
        self._bus = bus
        self._writer = writer
        self._options = options
        self._lock = threading.Lock()
        self._subs: Dict[str, Subscription] = {}
        self._created: set[str] = set()
        self._recording = False
        self._last_poll = 0.0
        self.messages_written = 0
        self.write_errors = 0

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def subscribed_topics(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._subs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def record(self) -> None:
        if self._recording:
            return
        self._recording = True
        if self._options.all_topics:
            self._discover()
        else:
            for topic in sorted(self._options.topics):
                self._subscribe(topic)
        logger.info("%s recording %s", self.name, "all topics" if self._options.all_topics else sorted(self._options.topics))

    def stop(self) -> None:
        self._recording = False
        with self._lock:
            subs = list(self._subs.values())
            self._subs.clear()
        for sub in subs:
            self._bus.unsubscribe(sub)
        logger.info("%s stopped after %d messages", self.name, self.messages_written)

    def spin_once(self) -> None:
        if not (self._recording and self._options.all_topics):
            return
        now = time.monotonic()
        if now - self._last_poll >= self._options.topic_polling_interval:
            self._discover()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def _discover(self) -> None:
        self._last_poll = time.monotonic()
        for topic in sorted(self._bus.topic_names_and_types()):
            self._subscribe(topic)

    def _subscribe(self, topic: str) -> None:
        with self._lock:
            if topic in self._subs or not self._recording:
                return
            self._subs[topic] = self._bus.subscribe(topic, self._on_message)
        logger.debug("%s subscribed to %s", self.name, topic)

    def _on_message(self, topic: str, msg: Any) -> None:
        if not self._recording:
            return
        received_ns = now_utc_ns()
        try:
            if topic not in self._created:
                self._writer.create_topic(topic, type_name_of(msg))
                self._created.add(topic)
            self._writer.write(topic, message_dump(msg), log_time_ns=received_ns)
        except Exception:
            with self._lock:
                self.write_errors += 1
            if not self._recording:
                # writer closed underneath a late delivery
                return
            logger.exception("%s failed to write message on %s", self.name, topic)
            return
        with self._lock:
            self.messages_written += 1


__all__ = ["RecordOptions", "TopicRecorder"]
