"""
Storage — on-device key → document persistence.

Whole-document semantics only: get(key) returns the full stored value,
set(key, value) replaces it. Stores built on top do read-modify-write.
"""
import json
import os
import tempfile
import threading
import logging
from typing import Any, Optional

log = logging.getLogger("storage")


class StorageError(Exception):
    """Local persistence failed (read or write)."""


class MemoryStorage:
    """Process-lifetime storage, used in tests and simulation."""

    def __init__(self, initial: Optional[dict] = None):
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        for k, v in (initial or {}).items():
            self._data[k] = json.dumps(v)

    def get(self, key: str) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any):
        with self._lock:
            self._data[key] = json.dumps(value)

    def remove(self, key: str):
        with self._lock:
            self._data.pop(key, None)


class JsonFileStorage:
    """
    One JSON file holding {key: document}.
    Writes go to a temp file in the same directory, then os.replace().
    """

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    def _load_all(self) -> dict:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise StorageError(f"read {self._path}: {e}") from e
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as e:
            raise StorageError(f"corrupt store {self._path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _save_all(self, data: dict):
        directory = os.path.dirname(self._path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp, self._path)
            finally:
                if os.path.exists(tmp):
                    os.unlink(tmp)
        except OSError as e:
            raise StorageError(f"write {self._path}: {e}") from e

    def get(self, key: str) -> Any:
        with self._lock:
            return self._load_all().get(key)

    def set(self, key: str, value: Any):
        with self._lock:
            data = self._load_all()
            data[key] = value
            self._save_all(data)
            log.debug(f"Saved {key!r} → {self._path}")

    def remove(self, key: str):
        with self._lock:
            data = self._load_all()
            if data.pop(key, None) is not None:
                self._save_all(data)
