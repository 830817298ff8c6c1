"""
Key-value persistence substrate.

String keys map to string values, the same contract as browser local storage.
Two implementations are provided:
- JsonFileKVStore: every key in one JSON file, rewritten atomically
- InMemoryKVStore: process-local dict, for tests and ephemeral runs

Read failures (missing key, malformed JSON) are reported as "absent".
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from storefront.exceptions import StorageError

logger = logging.getLogger(__name__)

# Default path for the storage file
DEFAULT_STORAGE_PATH = "data/storage.json"


class KVStore:
    """Base key-value store. Subclasses implement the three raw operations."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Read and decode a JSON value.

        Args:
            key: Storage key.
            default: Returned when the key is missing or its value is malformed.
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Malformed value under '{key}', treating as absent: {e}")
            return default

    def set_json(self, key: str, value: Any) -> None:
        """Encode a value as JSON and store it."""
        self.set(key, json.dumps(value))


class InMemoryKVStore(KVStore):
    """Dict-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKVStore(KVStore):
    """
    File-backed store keeping all keys in a single JSON object.

    The file is loaded lazily and rewritten through a temp file + replace so a
    crash mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize the store.

        Args:
            path: Path to the JSON storage file.
        """
        self.path = Path(path or DEFAULT_STORAGE_PATH)
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        """Load the storage file, treating a missing or corrupt file as empty."""
        if self._data is not None:
            return self._data

        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = {str(k): str(v) for k, v in raw.items()}
                else:
                    logger.warning(f"Storage file {self.path} is not an object, starting empty")
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load storage file {self.path}, starting empty: {e}")

        self._data = data
        return data

    def _flush(self) -> None:
        """Write the in-memory map back to disk atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to write storage file {self.path}: {e}")
            raise StorageError(f"Could not write storage file: {e}", details={"path": str(self.path)})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._load()[key] = str(value)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._flush()
