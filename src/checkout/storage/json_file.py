"""File-backed checkout cache.

The whole cache is one JSON document. Every write replaces the file through a
temporary sibling and ``os.replace`` so a reader never sees a half-written
document.
"""

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable

import structlog

from checkout.storage.port import KeyValueStore

logger = structlog.get_logger(__name__)


class JsonFileStore(KeyValueStore):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> dict:
        try:
            with self.path.open(encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("checkout_cache.corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update(lambda data: data.__setitem__(key, copy.deepcopy(value)))

    def remove(self, key: str) -> None:
        self.update(lambda data: data.pop(key, None))

    def update(self, mutator: Callable[[dict], None]) -> None:
        with self._lock:
            working = self._load()
            mutator(working)
            self._write(working)
