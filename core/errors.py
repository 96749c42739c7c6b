"""Exception taxonomy for the recording controller."""

from __future__ import annotations


class RecorderError(Exception):
    """Base class for every error raised by the recorder."""


class InvalidConfig(RecorderError, ValueError):
    """Configuration cannot be used to start a recording.

    Raised for an empty or malformed topic list, a non-positive file duration
    or an unknown storage id.  Fatal at startup.
    """


class StorageUnavailable(RecorderError):
    """The writer could not open or release its target location."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(f"storage unavailable at '{uri}': {reason}")
        self.uri = uri
        self.reason = reason


class DoubleTransition(RecorderError, RuntimeError):
    """A capture session was begun while recording or ended while idle."""


__all__ = ["RecorderError", "InvalidConfig", "StorageUnavailable", "DoubleTransition"]
