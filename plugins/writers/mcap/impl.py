
from __future__ import annotations
from pathlib import Path
from typing import BinaryIO, Dict, Optional

from mcap.writer import CompressionType, Writer

from data_collection.event_writer import BagWriter

# Messages are schemaless JSON objects; every type gets the permissive schema.
ANY_JSON_SCHEMA = b"{}"


class McapBagWriter(BagWriter):
    """Writes each bag file as an MCAP container with JSON encoded messages.

    The write cache maps onto the MCAP chunk size: records are buffered in the
    open chunk until it reaches ``max_cache_size`` bytes.
    """
    extension = "mcap"

    def __init__(self, library: str = "bagrecorder"):
        super().__init__()
        self.library = library
        self._fh: Optional[BinaryIO] = None
        self._mcap: Optional[Writer] = None
        self._schemas: Dict[str, int] = {}
        self._channels: Dict[str, int] = {}

    def _open_file(self, path: Path) -> None:
        chunk_size = self._options.max_cache_size or 1024 * 1024
        fh = open(path, "wb")
        try:
            mcap = Writer(fh, chunk_size=chunk_size, compression=CompressionType.NONE)
            mcap.start(profile="", library=self.library)
        except Exception:
            fh.close()
            raise
        self._fh, self._mcap = fh, mcap
        self._schemas = {}
        self._channels = {}

    def _register_topic(self, topic: str, type_name: str) -> None:
        if type_name not in self._schemas:
            self._schemas[type_name] = self._mcap.register_schema(
                name=type_name, encoding="jsonschema", data=ANY_JSON_SCHEMA
            )
        self._channels[topic] = self._mcap.register_channel(
            topic=topic, message_encoding="json", schema_id=self._schemas[type_name]
        )

    def _write_record(self, topic, type_name, payload, log_time_ns, sequence) -> int:
        self._mcap.add_message(
            channel_id=self._channels[topic],
            log_time=log_time_ns,
            data=payload,
            publish_time=log_time_ns,
            sequence=sequence,
        )
        return len(payload)

    def _flush(self) -> None:
        if self._fh: self._fh.flush()

    def _close_file(self) -> None:
        if self._mcap is None:
            return
        try:
            self._mcap.finish()
        finally:
            self._mcap = None
            self._fh.close()
            self._fh = None
