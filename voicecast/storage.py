"""Durable key-value storage for client-scoped state."""

import json
import logging
import os
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def load(self, key: str) -> str | None: ...

    def save(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store; contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data = dict(initial or {})

    def load(self, key: str) -> str | None:
        return self._data.get(key)

    def save(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Store backed by a single JSON object on disk.

    A missing, malformed or non-UTF-8 file reads as empty. Every save
    rewrites the whole file.
    """

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Malformed store file %s, treating as empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def save(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
