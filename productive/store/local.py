"""
Local Store: client-side key-value persistence.

Mirrors browser localStorage semantics: string keys, string values, one
blob per key. Values are kept as files under a data directory (or in
memory when no directory is given). Typed JSON helpers sit on top; a
malformed blob always reads as absent rather than raising.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path

from productive.lib.constants import AUTH_TOKEN_KEY, DATA_TYPES, LOCAL_KEY_PREFIX

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r'^[A-Za-z0-9_.-]+$')


def dataset_key(data_type: str) -> str:
    """Local Store key holding the blob for a dataType."""
    return f"{LOCAL_KEY_PREFIX}{data_type}"


class LocalStore:
    """String key-value store backed by a directory of files."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else None
        self._memory: dict[str, str] = {}
        self._lock = threading.Lock()
        if self.path is not None:
            self.path.mkdir(parents=True, exist_ok=True)

    def _file_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid local store key: {key!r}")
        return self.path / f"{key}.json"

    # Raw string API

    def get_item(self, key: str) -> str | None:
        if self.path is None:
            return self._memory.get(key)
        f = self._file_for(key)
        try:
            return f.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"[STORE] Error reading {key}: {e}")
            return None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            if self.path is None:
                self._memory[key] = value
                return
            f = self._file_for(key)
            tmp = f.with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, f)

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self.path is None:
                self._memory.pop(key, None)
                return
            self._file_for(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if self.path is None:
            return sorted(self._memory)
        return sorted(p.stem for p in self.path.glob("*.json"))

    # JSON API

    def get_json(self, key: str, default=None):
        """Parse a stored blob; missing or malformed blobs return default."""
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"[STORE] Malformed JSON under {key}, treating as absent: {e}")
            return default

    def set_json(self, key: str, value) -> None:
        self.set_item(key, json.dumps(value))

    # Datasets

    def get_dataset(self, data_type: str):
        """Return the local payload for a dataType, or None if absent."""
        return self.get_json(dataset_key(data_type))

    def set_dataset(self, data_type: str, payload) -> None:
        self.set_json(dataset_key(data_type), payload)
        logger.debug(f"[STORE] Local {data_type} data updated")

    def all_datasets(self) -> dict:
        """Every dataset present locally, keyed by dataType."""
        result = {}
        for data_type in DATA_TYPES:
            payload = self.get_dataset(data_type)
            if payload is not None:
                result[data_type] = payload
        return result

    # Credentials

    def get_token(self) -> str | None:
        token = self.get_item(AUTH_TOKEN_KEY)
        return token or None

    def set_token(self, token: str) -> None:
        self.set_item(AUTH_TOKEN_KEY, token)

    def clear_token(self) -> None:
        self.remove_item(AUTH_TOKEN_KEY)
