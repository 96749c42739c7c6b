
from __future__ import annotations
from importlib import import_module
from typing import Any, Mapping
class Registry:
    def __init__(self):
        self._map: dict[str, str] = {}
    def register(self, key: str, target: str) -> None:
        self._map[key] = target
    def register_many(self, targets: Mapping[str, str]) -> None:
        for key, target in targets.items():
            self.register(key, target)
    def has(self, key: str) -> bool:
        return key in self._map
    def keys(self) -> list[str]:
        return sorted(self._map)
    def resolve(self, key: str) -> Any:
        if key not in self._map:
            raise KeyError(f"no plugin registered under '{key}'")
        mod_path, _, obj = self._map[key].partition(":")
        mod = import_module(mod_path)
        return getattr(mod, obj) if obj else mod
    def create(self, key: str, *args, **kwargs):
        return self.resolve(key)(*args, **kwargs)
REGISTRY = Registry()
