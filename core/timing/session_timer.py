
from dataclasses import dataclass
from time import monotonic_ns

NS_PER_MS = 1_000_000


@dataclass
class SessionTimer:
    """Wall time a capture session has been active."""

    started_ns: int = 0
    stopped_ns: int = 0
    running: bool = False

    def start(self) -> None:
        self.started_ns = monotonic_ns()
        self.stopped_ns = 0
        self.running = True

    def stop(self) -> float:
        if self.running:
            self.stopped_ns = monotonic_ns()
            self.running = False
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        end = monotonic_ns() if self.running else self.stopped_ns
        return 0.0 if self.started_ns == 0 else (end - self.started_ns) / NS_PER_MS
