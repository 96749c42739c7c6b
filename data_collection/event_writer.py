from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from core.events import BagFileInfo, BagMetadata
from sdk.ids import NS_PER_S, new_ulid, now_utc_ns

logger = logging.getLogger(__name__)

DEFAULT_CACHE_BYTES = 10 * 1024 * 1024
METADATA_FILE = "metadata.json"


@dataclass(frozen=True)
class StorageOptions:
    """Where and how a bag is written.

    ``max_bagfile_size == 0`` disables size based splitting, leaving only the
    duration limit.
    """
    uri: str
    storage_id: str = "mcap"
    max_bagfile_size: int = 0
    max_bagfile_duration: int = 0
    max_cache_size: int = DEFAULT_CACHE_BYTES
    storage_preset_profile: str = ""
    snapshot_mode: bool = False


class BagWriter:
    """
    Base for rotating bag writers.

    Owns the bag directory, file splitting, write-cache accounting and the
    ``metadata.json`` summary. Subclasses implement the per-file hooks.
    Thread-safe within a process.
    """
    extension = ""

    def __init__(self) -> None:
        self._lock = Lock()
        self._options: Optional[StorageOptions] = None
        self._bag_dir: Optional[Path] = None
        self._session_id = ""
        self._topics: Dict[str, str] = {}
        self._counts: Dict[str, int] = {}
        self._files: List[BagFileInfo] = []
        self._file_bytes = 0
        self._cached = 0
        self._sequence = 0
        self.metadata: Optional[BagMetadata] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def is_open(self) -> bool:
        return self._options is not None

    @property
    def bag_dir(self) -> Optional[Path]:
        return self._bag_dir

    @property
    def files(self) -> List[Path]:
        return [Path(f.path) for f in self._files]

    def open(self, options: StorageOptions, session_id: Optional[str] = None) -> None:
        if options.snapshot_mode:
            raise ValueError("snapshot mode is not supported")
        bag_dir = Path(options.uri)
        if bag_dir.exists():
            raise FileExistsError(f"output folder already exists: {bag_dir}")
        bag_dir.mkdir(parents=True)
        with self._lock:
            self._options = options
            self._bag_dir = bag_dir
            self._session_id = session_id or new_ulid()
            try:
                self._start_file()
            except Exception:
                self._options = None
                raise
        logger.info("Opened %s bag at %s", options.storage_id, bag_dir)

    def create_topic(self, topic: str, type_name: str) -> None:
        with self._lock:
            self._require_open()
            if topic in self._topics:
                return
            self._topics[topic] = type_name
            self._counts.setdefault(topic, 0)
            self._register_topic(topic, type_name)

    def write(self, topic: str, data: Dict[str, Any], log_time_ns: Optional[int] = None) -> None:
        log_time_ns = now_utc_ns() if log_time_ns is None else log_time_ns
        payload = json.dumps(data, ensure_ascii=False).encode("utf-8")
        with self._lock:
            self._require_open()
            if topic not in self._topics:
                raise KeyError(f"topic '{topic}' was not created on this writer")
            if self._should_split(log_time_ns):
                self._split()
            self._sequence += 1
            n = self._write_record(topic, self._topics[topic], payload, log_time_ns, self._sequence)
            current = self._files[-1]
            current.message_count += 1
            if current.starting_time_ns is None:
                current.starting_time_ns = log_time_ns
            current.ending_time_ns = log_time_ns
            self._counts[topic] += 1
            self._file_bytes += n
            self._cached += n
            if self._cached >= self._options.max_cache_size:
                self._flush()
                self._cached = 0

    def split(self) -> None:
        """Close the current file and continue in a new one."""
        with self._lock:
            self._require_open()
            self._split()

    def close(self) -> Optional[BagMetadata]:
        with self._lock:
            if self._options is None:
                return self.metadata
            try:
                self._close_file()
            finally:
                self.metadata = self._build_metadata()
                self._options = None
            self._write_metadata(self.metadata)
        logger.info("Closed bag %s (%d files)", self._bag_dir, len(self._files))
        return self.metadata

    # ------------------------------------------------------------------
    # Rotation / bookkeeping
    # ------------------------------------------------------------------
    def _require_open(self) -> None:
        if self._options is None:
            raise RuntimeError("writer is not open")

    def _should_split(self, log_time_ns: int) -> bool:
        opts = self._options
        current = self._files[-1]
        if opts.max_bagfile_duration > 0 and current.starting_time_ns is not None:
            if log_time_ns - current.starting_time_ns >= opts.max_bagfile_duration * NS_PER_S:
                return True
        return opts.max_bagfile_size > 0 and self._file_bytes >= opts.max_bagfile_size

    def _split(self) -> None:
        self._close_file()
        self._start_file()
        logger.info("Split bag %s into %s", self._bag_dir, self._files[-1].path)

    def _start_file(self) -> None:
        path = self._bag_dir / f"{self._bag_dir.name}_{len(self._files)}.{self.extension}"
        self._open_file(path)
        self._files.append(BagFileInfo(path=str(path)))
        self._file_bytes = 0
        self._cached = 0
        for topic, type_name in self._topics.items():
            self._register_topic(topic, type_name)

    def _build_metadata(self) -> BagMetadata:
        starts = [f.starting_time_ns for f in self._files if f.starting_time_ns is not None]
        ends = [f.ending_time_ns for f in self._files if f.ending_time_ns is not None]
        return BagMetadata(
            session_id=self._session_id,
            uri=str(self._bag_dir),
            storage_id=self._options.storage_id,
            max_bagfile_duration=self._options.max_bagfile_duration,
            max_bagfile_size=self._options.max_bagfile_size,
            files=[f.model_copy() for f in self._files],
            topics=dict(self._topics),
            message_counts=dict(self._counts),
            starting_time_ns=min(starts) if starts else None,
            ending_time_ns=max(ends) if ends else None,
        )

    def _write_metadata(self, meta: BagMetadata) -> None:
        with (self._bag_dir / METADATA_FILE).open("w", encoding="utf-8") as fh:
            fh.write(meta.model_dump_json(indent=2))

    # ------------------------------------------------------------------
    # Per-file hooks
    # ------------------------------------------------------------------
    def _open_file(self, path: Path) -> None:
        raise NotImplementedError

    def _register_topic(self, topic: str, type_name: str) -> None:
        pass

    def _write_record(self, topic: str, type_name: str, payload: bytes, log_time_ns: int, sequence: int) -> int:
        raise NotImplementedError

    def _flush(self) -> None:
        pass

    def _close_file(self) -> None:
        raise NotImplementedError


def read_metadata(bag_dir: Path) -> BagMetadata:
    with (Path(bag_dir) / METADATA_FILE).open("r", encoding="utf-8") as fh:
        return BagMetadata.model_validate_json(fh.read())
