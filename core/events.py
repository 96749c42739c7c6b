"""Message models shared by the bus, the controller and the writers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sdk.ids import now_utc_ns


class ControlSignal(BaseModel):
    """Payload of the control topic; asks for recording to be on or off."""

    enable_recording: bool


class RecordedMessage(BaseModel):
    """One message as persisted by a bag writer."""

    topic: str
    type_name: str
    log_time_ns: int = Field(default_factory=now_utc_ns)
    sequence: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)


class BagFileInfo(BaseModel):
    path: str
    message_count: int = 0
    starting_time_ns: Optional[int] = None
    ending_time_ns: Optional[int] = None


class BagMetadata(BaseModel):
    """Summary written next to the bag files when a writer is closed."""

    session_id: str
    uri: str
    storage_id: str
    max_bagfile_duration: int
    max_bagfile_size: int = 0
    files: List[BagFileInfo] = Field(default_factory=list)
    topics: Dict[str, str] = Field(default_factory=dict)
    message_counts: Dict[str, int] = Field(default_factory=dict)
    starting_time_ns: Optional[int] = None
    ending_time_ns: Optional[int] = None


def type_name_of(msg: Any) -> str:
    """Return the type identifier the bus and writers use for ``msg``."""

    if isinstance(msg, BaseModel):
        cls = type(msg)
        return f"{cls.__module__}/{cls.__name__}"
    return "dict" if isinstance(msg, dict) else type(msg).__name__


def message_dump(msg: Any) -> Dict[str, Any]:
    """Return a JSON-ready ``dict`` for a bus message."""

    if isinstance(msg, BaseModel):
        return msg.model_dump(mode="json")
    if isinstance(msg, dict):
        return dict(msg)
    return {"data": msg}


__all__ = [
    "ControlSignal",
    "RecordedMessage",
    "BagFileInfo",
    "BagMetadata",
    "type_name_of",
    "message_dump",
]
