
from __future__ import annotations
import json
from pathlib import Path
from typing import IO, Optional

from core.events import RecordedMessage
from data_collection.event_writer import BagWriter


class JsonlBagWriter(BagWriter):
    """One ``RecordedMessage`` JSON object per line."""
    extension = "jsonl"

    def __init__(self):
        super().__init__()
        self.f: Optional[IO[str]] = None

    def _open_file(self, path: Path) -> None:
        self.f = open(path, "w", encoding="utf-8")

    def _write_record(self, topic, type_name, payload, log_time_ns, sequence) -> int:
        rec = RecordedMessage(
            topic=topic, type_name=type_name, log_time_ns=log_time_ns,
            sequence=sequence, data=json.loads(payload),
        )
        line = rec.model_dump_json() + "\n"
        self.f.write(line)
        return len(line.encode("utf-8"))

    def _flush(self) -> None:
        if self.f: self.f.flush()

    def _close_file(self) -> None:
        if self.f:
            try:
                self.f.flush()
            finally:
                self.f.close()
                self.f = None
