"""Shared test fixtures."""

from pathlib import Path

import pytest

from taskmind.agent.threads import ThreadStore
from taskmind.memory.hybrid import HybridMemory
from taskmind.memory.store import MemoryRecordStore
from taskmind.memory.vector_index import VectorIndex
from taskmind.tasks.store import TaskStore
from tests.fakes import NOW, KeywordEmbedder


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("taskmind.config.settings.turso_database_url", "")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def db_path(tmp_path: Path, _no_turso) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def task_store(db_path: Path) -> TaskStore:
    return TaskStore(db_path=db_path)


@pytest.fixture
def record_store(db_path: Path) -> MemoryRecordStore:
    return MemoryRecordStore(db_path=db_path)


@pytest.fixture
def vector_index(db_path: Path) -> VectorIndex:
    return VectorIndex(db_path=db_path)


@pytest.fixture
def thread_store(db_path: Path) -> ThreadStore:
    return ThreadStore(db_path=db_path)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def memory(record_store, vector_index, embedder) -> HybridMemory:
    return HybridMemory(record_store, vector_index, embedder, store_timeout=5.0)
