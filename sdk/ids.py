
from __future__ import annotations
import time, ulid
from datetime import datetime, timezone
NS_PER_S = 1_000_000_000
def now_utc_ns() -> int: return time.time_ns()
def now_utc() -> datetime: return datetime.now(timezone.utc)
def new_ulid() -> str: return str(ulid.new())
