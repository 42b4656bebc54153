"""
String key-value backends used for locally persisted blobs.

These play the role a browser's ``localStorage`` plays for a web client:
values are strings, a missing key reads as ``None``, and there is no
versioning of what is stored under a key.
"""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class MemoryKeyValueStorage(KeyValueStorage):
    def __init__(self, initial: Dict[str, str] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        self._items[key] = value

    def remove_item(self, key):
        self._items.pop(key, None)

    def keys(self):
        return list(self._items)


class FileKeyValueStorage(KeyValueStorage):
    """All keys live in one JSON object on disk, rewritten on each change."""

    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        self.file_path = file_path
        directory = os.path.dirname(os.path.abspath(file_path))
        os.makedirs(directory, exist_ok=True)

    def _read_all(self) -> Dict[str, str]:
        with self._file_lock:
            try:
                with open(self.file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                return {}
            except json.JSONDecodeError as e:
                logger.warning("Key-value file %s is corrupt, starting empty: %s", self.file_path, e)
                return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, items: Dict[str, str]) -> None:
        tmp_path = f"{self.file_path}.tmp"
        with self._file_lock:
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(items, f, ensure_ascii=False)
                os.replace(tmp_path, self.file_path)
            except OSError as e:
                raise StorageError(f"Cannot write {self.file_path}: {e}")

    def get_item(self, key):
        return self._read_all().get(key)

    def set_item(self, key, value):
        with self._file_lock:
            items = self._read_all()
            items[key] = value
            self._write_all(items)

    def remove_item(self, key):
        with self._file_lock:
            items = self._read_all()
            if key in items:
                del items[key]
                self._write_all(items)

    def keys(self):
        return list(self._read_all())


class RedisKeyValueStorage(KeyValueStorage):
    def __init__(self, client, namespace: str = "patienthub:"):
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get_item(self, key):
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set_item(self, key, value):
        self.client.set(self._key(key), value)

    def remove_item(self, key):
        self.client.delete(self._key(key))

    def keys(self):
        found = self.client.keys(f"{self.namespace}*")
        prefix = len(self.namespace)
        return [
            (k.decode("utf-8") if isinstance(k, bytes) else k)[prefix:]
            for k in found
        ]
