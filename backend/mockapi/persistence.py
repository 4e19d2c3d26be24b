"""Persistence adapters for the reactive client-state containers.

Each container is saved under its own key as ``{"state": ..., "version": N}``.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _file_name(key: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]+", "-", key)


class PersistenceAdapter(Protocol):
    def load(self, key: str) -> Optional[dict]:
        ...

    def save(self, key: str, payload: dict) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


@dataclass
class MemoryStorage:
    """Dict-backed storage, the equivalent of a browser's local storage."""

    entries: dict[str, str] = field(default_factory=dict)

    def load(self, key: str) -> Optional[dict]:
        raw = self.entries.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, payload: dict) -> None:
        self.entries[key] = json.dumps(payload, default=str)

    def remove(self, key: str) -> None:
        self.entries.pop(key, None)


@dataclass
class JsonFileStorage:
    """One JSON document per key inside a state directory."""

    base_path: Path

    def _state_file(self, key: str) -> Path:
        return self.base_path / f"{_file_name(key)}.json"

    def load(self, key: str) -> Optional[dict]:
        state_file = self._state_file(key)
        if not state_file.exists():
            return None
        return json.loads(state_file.read_text(encoding="utf-8"))

    def save(self, key: str, payload: dict) -> None:
        _ensure_directory(self.base_path)
        self._state_file(key).write_text(
            json.dumps(payload, indent=2, default=str), encoding="utf-8"
        )

    def remove(self, key: str) -> None:
        self._state_file(key).unlink(missing_ok=True)


class StateKey:
    """Loads or creates the Fernet key used for encrypted state files."""

    def __init__(self, key_path: Path) -> None:
        self.key_path = key_path

    def get_key(self) -> bytes:
        if self.key_path.exists():
            return self.key_path.read_bytes().strip()
        _ensure_directory(self.key_path.parent)
        key = Fernet.generate_key()
        self.key_path.write_bytes(key)
        return key


@dataclass
class EncryptedFileStorage:
    """File storage whose payloads are Fernet-encrypted at rest."""

    base_path: Path
    key: bytes

    def _state_file(self, key: str) -> Path:
        return self.base_path / f"{_file_name(key)}.json.enc"

    def load(self, key: str) -> Optional[dict]:
        state_file = self._state_file(key)
        if not state_file.exists():
            return None
        fernet = Fernet(self.key)
        try:
            decrypted = fernet.decrypt(state_file.read_bytes())
        except InvalidToken:
            logger.warning("Could not decrypt persisted state %s", key)
            return None
        return json.loads(decrypted.decode("utf-8"))

    def save(self, key: str, payload: dict) -> None:
        _ensure_directory(self.base_path)
        fernet = Fernet(self.key)
        encoded = json.dumps(payload, default=str).encode("utf-8")
        self._state_file(key).write_bytes(fernet.encrypt(encoded))

    def remove(self, key: str) -> None:
        self._state_file(key).unlink(missing_ok=True)
