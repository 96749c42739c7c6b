"""Acquire and release the resources of one recording."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from core.bus import Bus
from core.errors import InvalidConfig, StorageUnavailable
from core.executor import ExecutionContext
from core.timing.session_timer import SessionTimer
from sdk.config import RecordingConfig
from sdk.ids import new_ulid
from sdk.registry import REGISTRY, Registry

from .event_writer import BagWriter, StorageOptions
from .recorders.topic_recorder import RecordOptions, TopicRecorder
from .topic_filter import TopicScope

logger = logging.getLogger(__name__)


@dataclass
class CaptureHandle:
    """Everything a running capture session owns."""

    session_id: str
    storage_options: StorageOptions
    record_options: RecordOptions
    writer: BagWriter
    recorder: TopicRecorder
    timer: SessionTimer = field(default_factory=SessionTimer)

    @property
    def uri(self) -> str:
        return self.storage_options.uri

    def describe(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "uri": self.uri,
            "storage_id": self.storage_options.storage_id,
            "max_bagfile_duration": self.storage_options.max_bagfile_duration,
            "record_all": self.record_options.all_topics,
            "topics": sorted(self.recorder.subscribed_topics),
            "messages_written": self.recorder.messages_written,
            "elapsed_ms": self.timer.elapsed_ms,
        }


class CaptureSession:
    """
    ``begin`` opens a writer, wraps it in a :class:`TopicRecorder` and adds
    that unit to the execution context; ``end`` undoes it.  Callers must
    serialize begin/end pairs; no internal state is re-checked here.
    """

    def __init__(
        self,
        context: ExecutionContext,
        bus: Bus,
        registry: Registry = REGISTRY,
        writer_factory: Optional[Callable[[str], BagWriter]] = None,
    ) -> None:
        self.context = context
        self.bus = bus
        self._registry = registry
        self._writer_factory = writer_factory

    def _make_writer(self, storage_id: str) -> BagWriter:
        if self._writer_factory is not None:
            return self._writer_factory(storage_id)
        key = f"writer.{storage_id}"
        if not self._registry.has(key):
            raise InvalidConfig(f"unknown storage id '{storage_id}' (known: {self._registry.keys()})")
        return self._registry.create(key)

    def begin(self, config: RecordingConfig, scope: TopicScope, path: str) -> CaptureHandle:
        storage = StorageOptions(
            uri=path,
            storage_id=config.storage_id,
            max_bagfile_size=0,
            max_bagfile_duration=config.file_duration,
            max_cache_size=config.max_cache_size,
            storage_preset_profile="",
            snapshot_mode=False,
        )
        record = RecordOptions(
            all_topics=scope.record_all,
            topics=scope.topics,
            topic_polling_interval=config.topic_polling_interval,
        )
        session_id = new_ulid()
        writer = self._make_writer(config.storage_id)
        try:
            writer.open(storage, session_id=session_id)
        except OSError as exc:
            raise StorageUnavailable(path, str(exc)) from exc

        recorder = TopicRecorder(self.bus, writer, record, name=f"recorder_{session_id}")
        try:
            self.context.add_unit(recorder)
        except Exception:
            writer.close()
            raise
        handle = CaptureHandle(session_id, storage, record, writer, recorder)
        recorder.record()
        handle.timer.start()
        logger.info("Capture session %s writing to %s", session_id, path)
        return handle

    def end(self, handle: CaptureHandle) -> None:
        handle.recorder.stop()
        try:
            self.context.remove_unit(handle.recorder)
        finally:
            handle.timer.stop()
            try:
                handle.writer.close()
            except OSError as exc:
                raise StorageUnavailable(handle.uri, str(exc)) from exc
        logger.info(
            "Capture session %s ended after %.1f s", handle.session_id, handle.timer.elapsed_ms / 1000.0
        )


__all__ = ["CaptureHandle", "CaptureSession"]
