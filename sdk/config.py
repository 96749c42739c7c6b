
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.errors import InvalidConfig

WILDCARD = "*"
DEFAULT_TOPICS = ["/rosout", "/system_messenger", "/labjack_ain"]
DEFAULT_CACHE_BYTES = 10 * 1024 * 1024

# camelCase names used in node parameter files.
PARAM_ALIASES = {
    "dataFolder": "data_folder",
    "fileDuration": "file_duration",
    "loggedTopics": "logged_topics",
    "storageId": "storage_id",
    "maxCacheSize": "max_cache_size",
}


def _env_topics() -> List[str]:
    raw = os.getenv("BAGREC_LOGGED_TOPICS")
    if raw is None:
        return list(DEFAULT_TOPICS)
    return [t.strip() for t in raw.split(",") if t.strip()]


class RecordingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    data_folder: str = Field(default_factory=lambda: os.getenv("BAGREC_DATA_FOLDER", "/home/m2/Data"))
    file_duration: int = Field(default_factory=lambda: int(os.getenv("BAGREC_FILE_DURATION", "60")))
    logged_topics: List[str] = Field(default_factory=_env_topics)
    storage_id: str = Field(default_factory=lambda: os.getenv("BAGREC_STORAGE_ID", "mcap"))
    max_cache_size: int = DEFAULT_CACHE_BYTES
    control_topic: str = "/bag_control"
    topic_polling_interval: float = 1.0
    # Extension point for periodic rotation; None keeps the ticker off.
    reset_interval: Optional[float] = None

    @field_validator("data_folder")
    @classmethod
    def _folder_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("data_folder must not be empty")
        return v

    @field_validator("file_duration")
    @classmethod
    def _positive_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("file_duration must be > 0 seconds")
        return v

    @field_validator("max_cache_size")
    @classmethod
    def _cache_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_cache_size must be >= 0")
        return v

    @field_validator("topic_polling_interval", "reset_interval")
    @classmethod
    def _positive_interval(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("intervals must be > 0 seconds")
        return v

    @model_validator(mode="after")
    def _topics_well_formed(self) -> "RecordingConfig":
        topics = self.logged_topics
        if not topics:
            raise ValueError("logged_topics must contain at least one topic")
        if WILDCARD in topics and len(topics) != 1:
            raise ValueError("'*' must be the only entry of logged_topics")
        if any(not t.strip() for t in topics):
            raise ValueError("logged_topics must not contain blank names")
        return self


class AppConfig(BaseModel):
    executor_threads: int = 4
    plugins: dict = Field(default_factory=lambda: {
        "writer.mcap": "plugins.writers.mcap.impl:McapBagWriter",
        "writer.jsonl": "plugins.writers.jsonl.impl:JsonlBagWriter",
    })


def _normalise_keys(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {PARAM_ALIASES.get(k, k): v for k, v in params.items()}


def read_params_file(path: Path) -> Dict[str, Any]:
    """Read a JSON parameter file.

    Either a flat mapping or one nested under ``"parameters"`` is accepted,
    with camelCase parameter names or the snake_case field names.
    """
    try:
        with Path(path).open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidConfig(f"cannot read parameter file {path}: {exc}") from exc
    if isinstance(payload, dict) and isinstance(payload.get("parameters"), dict):
        payload = payload["parameters"]
    if not isinstance(payload, dict):
        raise InvalidConfig(f"parameter file {path} must contain a JSON object")
    return _normalise_keys(payload)


def load_recording_config(path: Optional[Path] = None, **overrides: Any) -> RecordingConfig:
    """Build a validated :class:`RecordingConfig`.

    Precedence: explicit ``overrides`` (``None`` values ignored), then the
    parameter file, then environment defaults.
    """
    params: Dict[str, Any] = read_params_file(path) if path is not None else {}
    params.update({k: v for k, v in _normalise_keys(overrides).items() if v is not None})
    try:
        return RecordingConfig(**params)
    except ValidationError as exc:
        raise InvalidConfig(str(exc)) from exc


SDK_CONFIG = AppConfig()
