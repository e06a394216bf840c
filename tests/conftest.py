"""Shared fixtures for tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeServer

from lectern.config import AppConfig
from lectern.library.database import Database
from lectern.library.store import LibraryStore, MemoryStore


@pytest.fixture
def db(tmp_path: Path) -> Database:
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path) -> LibraryStore:
    if request.param == "memory":
        yield MemoryStore()
        return
    database = Database(tmp_path / "store.db")
    yield database
    database.close()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )
