"""In-process topic bus.

Stands in for the messaging middleware: topics are advertised with a type
name, messages are published by name, and every subscriber callback is run
on the execution context's worker threads (or inline when the bus has no
context, which tests rely on).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .events import type_name_of
from .executor import ExecutionContext

logger = logging.getLogger(__name__)

Callback = Callable[[str, Any], None]


@dataclass(eq=False)
class Subscription:
    topic: str
    callback: Callback
    active: bool = field(default=True)


class Bus:
    def __init__(self, context: Optional[ExecutionContext] = None) -> None:
        self._context = context
        self._lock = threading.Lock()
        self._types: Dict[str, str] = {}
        self._subs: Dict[str, List[Subscription]] = {}

    def advertise(self, topic: str, type_name: str) -> None:
        with self._lock:
            known = self._types.get(topic)
            if known is not None and known != type_name:
                raise ValueError(f"topic '{topic}' already carries '{known}', not '{type_name}'")
            self._types[topic] = type_name

    def topic_names_and_types(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._types)

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        sub = Subscription(topic, callback)
        with self._lock:
            self._subs.setdefault(topic, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.active = False
        with self._lock:
            subs = self._subs.get(sub.topic, [])
            if sub in subs:
                subs.remove(sub)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subs.get(topic, []))

    def publish(self, topic: str, msg: Any) -> int:
        """Deliver ``msg`` to every subscriber of ``topic``; returns the count."""

        self.advertise(topic, type_name_of(msg))
        with self._lock:
            subs = list(self._subs.get(topic, []))
        for sub in subs:
            if self._context is None:
                self._deliver(sub, msg)
            else:
                self._context.submit(self._deliver, sub, msg)
        return len(subs)

    @staticmethod
    def _deliver(sub: Subscription, msg: Any) -> None:
        if sub.active:
            sub.callback(sub.topic, msg)


__all__ = ["Bus", "Subscription"]
