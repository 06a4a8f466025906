"""
Key-value persistence for ZenScreen.

Every entity lives under a namespaced string key as a JSON-compatible value.
Failures never propagate: reads fall back to the caller's default and writes
report False.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal store interface: get, set, remove, clear a key set."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default if absent/unreadable."""

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store value under key. Returns True on success."""

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete key if present. Returns True on success."""

    @abstractmethod
    def clear_keys(self, keys: Iterable[str]) -> bool:
        """Delete every key in keys in one write. Returns True on success."""


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
        return True

    def remove(self, key: str) -> bool:
        with self._lock:
            self._data.pop(key, None)
        return True

    def clear_keys(self, keys: Iterable[str]) -> bool:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)
        return True

    def keys(self):
        with self._lock:
            return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON document on disk.

    Each mutation is a read-modify-write of the whole document under a lock,
    finished with an atomic temp-file rename so a crash mid-write never
    leaves a truncated file.
    """

    def __init__(self, path: Path):
        """
        Args:
            path: Location of the JSON document (created on first write)
        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_document(self) -> Dict[str, Any]:
        """Load the whole document. Missing or unreadable files read as empty."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.warning(f"Failed to read store {self.path}: {e}. Using defaults.")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Store {self.path} is not a JSON object. Using defaults.")
            return {}
        return data

    def _write_document(self, data: Dict[str, Any]) -> bool:
        """Write the whole document atomically."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='store_',
                dir=self.path.parent
            )

            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(data, f, indent=2)
                os.replace(temp_path, self.path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

            return True
        except (IOError, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write store {self.path}: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read_document().get(key, default)

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            data = self._read_document()
            data[key] = value
            saved = self._write_document(data)
        if saved:
            logger.debug(f"Saved key '{key}'")
        return saved

    def remove(self, key: str) -> bool:
        with self._lock:
            data = self._read_document()
            if key not in data:
                return True
            del data[key]
            return self._write_document(data)

    def clear_keys(self, keys: Iterable[str]) -> bool:
        with self._lock:
            data = self._read_document()
            for key in keys:
                data.pop(key, None)
            return self._write_document(data)
