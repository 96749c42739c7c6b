# config/paths.py
"""
Output location management for recorded bags.

Design goals
- Bag directories are named ``Bag_YYYY_MM_DD_HH_MM_SS`` from UTC wall time
- Names never go backwards in time and never repeat within one process
- Honors these env vars (matching the SDK):
    BAGREC_DATA_FOLDER, BAGREC_LOGS_ROOT
- Helpers to list and validate the data folder
"""

from __future__ import annotations

import errno
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Set

from sdk.ids import now_utc

BAG_PREFIX = "Bag_"
BAG_TIME_FORMAT = "%Y_%m_%d_%H_%M_%S"


# ---------- Path naming ----------

def _as_utc(now: datetime) -> datetime:
    # naive datetimes are taken to already be UTC
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def derive_path(base_dir: str, now: datetime) -> str:
    """
    Return the output location for a bag started at ``now``:
      derive_path("/data", 2024-10-02T03:04:05Z) -> "/data/Bag_2024_10_02_03_04_05"
    """
    stamp = _as_utc(now).strftime(BAG_TIME_FORMAT)
    return str(PurePosixPath(base_dir) / f"{BAG_PREFIX}{stamp}")


class PathNamer:
    """
    Stateful wrapper around derive_path().

    - The clock reading is clamped so it never goes backwards.
    - A path already handed out, or already present on disk, gets a counter
      suffix: Bag_2024_10_02_03_04_05_1, _2, ...
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_now: Optional[datetime] = None
        self._issued: Set[str] = set()

    def now(self) -> datetime:
        now = _as_utc(self._clock())
        if self._last_now is not None and now < self._last_now:
            now = self._last_now
        self._last_now = now
        return now

    def next_path(self, base_dir: str) -> str:
        with self._lock:
            base = derive_path(base_dir, self.now())
            path, n = base, 0
            while path in self._issued or os.path.exists(path):
                n += 1
                path = f"{base}_{n}"
            self._issued.add(path)
            return path


# ---------- Environment overrides (aligned with SDK) ----------

def _env_or_default_data_root() -> Path:
    return Path(os.getenv("BAGREC_DATA_FOLDER", "/home/m2/Data"))


def _env_or_default_logs_root() -> Path:
    return Path(os.getenv("BAGREC_LOGS_ROOT", "logs"))


# ---------- Core dataclass ----------

@dataclass(frozen=True)
class Paths:
    """Canonical path container for the recorder."""
    data_root: Path
    logs_root: Path

    @staticmethod
    def from_env() -> "Paths":
        return Paths(_env_or_default_data_root(), _env_or_default_logs_root())

    @staticmethod
    def for_data_folder(data_folder: str) -> "Paths":
        return Paths(Path(data_folder), _env_or_default_logs_root())

    @property
    def recorder_log(self) -> Path:
        return self.logs_root / "bag_recorder.log"

    def bag_dirs(self) -> List[Path]:
        """Bag directories under data_root, newest name first."""
        if not self.data_root.is_dir():
            return []
        return sorted(
            (p for p in self.data_root.iterdir() if p.is_dir() and p.name.startswith(BAG_PREFIX)),
            key=lambda p: p.name,
            reverse=True,
        )

    def verify_writeable(self) -> None:
        """
        Raise OSError if data_root cannot be created or written to.
        """
        p = self.data_root
        try:
            p.mkdir(parents=True, exist_ok=True)
            test = p / ".write_test"
            test.write_text("ok", encoding="utf-8")
            test.unlink(missing_ok=True)
        except OSError as e:
            raise OSError(errno.EACCES, f"Not writeable: {p}", e) from e


# ---------- CLI sanity check ----------

if __name__ == "__main__":
    p = Paths.from_env()
    try:
        p.verify_writeable()
    except OSError as e:
        print(f"[WARN] Writeability check failed: {e}")

    print("Data root:   ", p.data_root)
    print("Logs root:   ", p.logs_root)
    print("Next bag:    ", PathNamer().next_path(str(p.data_root)))
    for d in p.bag_dirs():
        print("  ", d.name)
