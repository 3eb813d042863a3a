"""In-process checkout cache. Used by default and in tests."""

import copy
import threading
from typing import Any, Callable

from checkout.storage.port import KeyValueStore


class MemoryStore(KeyValueStore):
    def __init__(self, initial: dict | None = None) -> None:
        self._data: dict = copy.deepcopy(initial) if initial else {}
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def update(self, mutator: Callable[[dict], None]) -> None:
        with self._lock:
            working = copy.deepcopy(self._data)
            mutator(working)
            self._data = working

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._data)
