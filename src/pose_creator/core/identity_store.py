"""
Persistent storage for the base character identity.

The workflow never touches files directly: it is handed an IdentityStore,
which wraps a small key-value capability (get/set/clear). The JSON file store
shares the user config file with the API key.
"""

import binascii
import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import BASE_IMAGE_STORAGE_KEY, CONFIG_PATH
from ..logging_utils import log_debug, log_warning
from ..processing.image_utils import decode_base64, encode_base64
from .models import BaseIdentity


class MemoryKeyValueStore:
    """Key-value capability kept in memory (tests, throwaway sessions)."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    Key-value capability backed by a JSON file.

    The whole file is re-read on every get and rewritten on every set/clear,
    so other keys in the file (like the API key) are preserved.
    """

    def __init__(self, path: Path = CONFIG_PATH):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log_warning(f"Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass  # Permissions may not be supported on all platforms

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def clear(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)


class IdentityStore:
    """
    Get/set/clear access to the single persisted BaseIdentity.

    Records are stored as {"data": <base64>, "mimeType": <str>} under
    BASE_IMAGE_STORAGE_KEY.
    """

    def __init__(self, backend, key: str = BASE_IMAGE_STORAGE_KEY):
        self._backend = backend
        self._key = key

    def get(self) -> Optional[BaseIdentity]:
        record = self._backend.get(self._key)
        if not record:
            return None
        try:
            return BaseIdentity(
                image_bytes=decode_base64(record["data"]),
                mime_type=record["mimeType"],
            )
        except (KeyError, TypeError, binascii.Error) as e:
            log_warning(f"Ignoring malformed base identity record: {e}")
            return None

    def set(self, identity: BaseIdentity) -> None:
        self._backend.set(self._key, {
            "data": encode_base64(identity.image_bytes),
            "mimeType": identity.mime_type,
        })
        log_debug(f"Base identity saved ({len(identity.image_bytes)} bytes, {identity.mime_type})")

    def clear(self) -> None:
        self._backend.clear(self._key)
        log_debug("Base identity cleared")
