from __future__ import annotations

import pytest

from mockapi.config import Settings
from mockapi.console import build_console
from mockapi.persistence import MemoryStorage
from mockapi.preferences import DocumentRoot
from mockapi.storage import EntityStore, default_dataset


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        latency_scale=0,
        state_dir=tmp_path / "state",
        state_key_path=tmp_path / "state" / "state.key",
    )


@pytest.fixture()
def store(settings) -> EntityStore:
    return EntityStore(settings, default_dataset(settings))


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def document() -> DocumentRoot:
    return DocumentRoot()


@pytest.fixture()
def console(settings, storage, document):
    return build_console(settings, storage=storage, document=document)
