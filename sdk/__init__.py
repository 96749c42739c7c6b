from .config import SDK_CONFIG, RecordingConfig, load_recording_config
from .registry import REGISTRY

REGISTRY.register_many(SDK_CONFIG.plugins)

__all__ = ["SDK_CONFIG", "REGISTRY", "RecordingConfig", "load_recording_config"]
