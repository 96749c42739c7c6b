"""Shared pytest fixtures for the recorder test suite."""

import sys
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Ensure the project root is importable when running without an install
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.bus import Bus  # noqa: E402
from core.errors import StorageUnavailable  # noqa: E402
from core.executor import ExecutionContext  # noqa: E402
from sdk.config import RecordingConfig  # noqa: E402


class FakeHandle:
    def __init__(self, session_id: str, uri: str) -> None:
        self.session_id = session_id
        self.uri = uri

    def describe(self):
        return {"session_id": self.session_id, "uri": self.uri}


class FakeCapture:
    """Stand-in for CaptureSession that records begin/end calls."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.paths: List[str] = []
        self.fail_begin: Optional[Exception] = None
        self.fail_end: Optional[Exception] = None
        # when set, end() blocks until the event is released
        self.end_gate: Optional[threading.Event] = None
        self.end_entered = threading.Event()

    def begin(self, config, scope, path):
        if self.fail_begin is not None:
            raise self.fail_begin
        self.calls.append("begin")
        self.paths.append(path)
        return FakeHandle(f"s{len(self.paths)}", path)

    def end(self, handle):
        self.calls.append("end")
        self.end_entered.set()
        if self.end_gate is not None:
            self.end_gate.wait(5.0)
        if self.fail_end is not None:
            raise self.fail_end


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def recording_config(tmp_path) -> RecordingConfig:
    return RecordingConfig(
        data_folder=str(tmp_path / "data"),
        file_duration=60,
        logged_topics=["*"],
        storage_id="jsonl",
    )


@pytest.fixture
def context():
    ctx = ExecutionContext(num_threads=2, tick_interval=0.01)
    yield ctx
    ctx.shutdown()


@pytest.fixture
def inline_bus() -> Bus:
    """A bus that delivers on the publishing thread."""
    return Bus()


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


__all__ = ["FakeCapture", "FakeHandle", "StorageUnavailable", "wait_for"]
