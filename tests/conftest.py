# tests/conftest.py

from __future__ import annotations

import os
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backends for tests to avoid filesystem/network dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from task_api.main import app  # noqa: E402
from task_api.repositories import get_repository  # noqa: E402
from task_api.storage import get_object_store  # noqa: E402

from .fakes import Event, FlakyObjectStore, FlakyRepository  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture()
def events() -> List[Event]:
    """Shared log of backend calls, in call order."""
    return []


@pytest.fixture()
def repo(events: List[Event]) -> FlakyRepository:
    return FlakyRepository(events)


@pytest.fixture()
def store(events: List[Event]) -> FlakyObjectStore:
    return FlakyObjectStore(events)


@pytest.fixture()
def client(repo: FlakyRepository, store: FlakyObjectStore) -> Iterator[TestClient]:
    """
    TestClient wired to fresh in-memory backends for every test.
    """
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_object_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
