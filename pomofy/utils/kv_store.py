#!/usr/bin/env python3
"""
💾 Durable key-value storage for Pomofy
String keys, string values, last write wins. ``JsonFileStore`` persists to a
single JSON document written atomically so a crash never leaves a torn file.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from .token_encryption import TokenCipher

logger = logging.getLogger('storage')


class KeyValueStore(ABC):
    """Interface shared by all storage backends."""

    @abstractmethod
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, *keys: str) -> None:
        ...

    @abstractmethod
    def items(self) -> Iterable[Tuple[str, str]]:
        ...

    def update(self, values: Dict[str, Optional[str]]) -> None:
        """Write several keys; ``None`` values delete the key."""
        for key, value in values.items():
            if value is None:
                self.delete(key)
            else:
                self.set(key, value)


class MemoryStore(KeyValueStore):
    """In-process store (tests and ephemeral runs)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def items(self) -> Iterable[Tuple[str, str]]:
        with self._lock:
            return list(self._data.items())


class JsonFileStore(KeyValueStore):
    """JSON file backed store with optional encryption of sensitive keys.

    Args:
        path: JSON document location
        cipher: Encrypts values of ``encrypted_keys`` at rest
        encrypted_keys: Keys whose values are encrypted when a cipher is set
    """

    def __init__(
        self,
        path: Path,
        *,
        cipher: Optional[TokenCipher] = None,
        encrypted_keys: Iterable[str] = (),
    ):
        self.path = Path(path)
        self._cipher = cipher
        self._encrypted_keys = frozenset(encrypted_keys)
        self._lock = threading.RLock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("storage.load_failed path=%s error=%s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("storage.load_failed path=%s error=not a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _save(self) -> None:
        """Persist atomically; caller holds the lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(self._data, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def _encode(self, key: str, value: str) -> str:
        if self._cipher is not None and key in self._encrypted_keys:
            return self._cipher.encrypt(value)
        return value

    def _decode(self, key: str, stored: str) -> Optional[str]:
        if self._cipher is not None and key in self._encrypted_keys:
            return self._cipher.decrypt(stored)
        return stored

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            stored = self._data.get(key)
        if stored is None:
            return default
        value = self._decode(key, stored)
        return default if value is None else value

    def _commit(self, previous: Dict[str, str]) -> None:
        """Save, or restore ``previous`` when the write fails; caller holds the lock."""
        try:
            self._save()
        except OSError:
            self._data = previous
            logger.error("storage.save_failed path=%s", self.path)
            raise

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = dict(self._data)
            self._data[key] = self._encode(key, str(value))
            self._commit(previous)

    def update(self, values: Dict[str, Optional[str]]) -> None:
        with self._lock:
            previous = dict(self._data)
            for key, value in values.items():
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = self._encode(key, str(value))
            self._commit(previous)

    def delete(self, *keys: str) -> None:
        with self._lock:
            previous = dict(self._data)
            removed = [key for key in keys if self._data.pop(key, None) is not None]
            if removed:
                self._commit(previous)

    def items(self) -> Iterable[Tuple[str, str]]:
        with self._lock:
            snapshot = list(self._data.items())
        result = []
        for key, stored in snapshot:
            value = self._decode(key, stored)
            if value is not None:
                result.append((key, value))
        return result
