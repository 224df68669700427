import os
import threading
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

# Default to the memory backend so importing the app touches no files
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from fastapi.testclient import TestClient  # noqa: E402

from taskdeck.backends import (  # noqa: E402
    InMemoryDocumentBackend,
    KeyValueCollection,
    MemoryKeyValueBackend,
)
from taskdeck.dependencies import get_store_registry  # noqa: E402
from taskdeck.exceptions import PersistenceError  # noqa: E402
from taskdeck.main import app  # noqa: E402
from taskdeck.models import CATEGORIES_KEY, TASKS_KEY  # noqa: E402
from taskdeck.registry import StoreRegistry  # noqa: E402
from taskdeck.settings import Settings  # noqa: E402
from taskdeck.stores import CategoryStore, TaskStore  # noqa: E402


class FakeClock:
    """Returns a new time one second later on every call."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FailingKeyValueBackend(MemoryKeyValueBackend):
    """Memory backend whose writes fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def write(self, key, records):
        if self.failing:
            raise PersistenceError("backend unreachable")
        super().write(key, records)


class GatedKeyValueBackend(MemoryKeyValueBackend):
    """
    Memory backend whose next write, once `hold_next` is set, signals
    `entered`, waits for `release`, then fails.
    """

    def __init__(self):
        super().__init__()
        self.hold_next = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def write(self, key, records):
        if self.hold_next:
            self.hold_next = False
            self.entered.set()
            self.release.wait(timeout=5)
            raise PersistenceError("write rejected")
        super().write(key, records)


class FlakyDocumentBackend(InMemoryDocumentBackend):
    """Document backend rejecting writes to the ids listed in `reject`."""

    def __init__(self):
        super().__init__()
        self.reject: List[str] = []

    def _put(self, user_id, collection, doc_id, data):
        if doc_id in self.reject:
            raise PersistenceError(f"write to {doc_id} rejected")
        super()._put(user_id, collection, doc_id, data)


def make_settings(backend: str = "memory", tmp_path=None, **overrides) -> Settings:
    base = str(tmp_path) if tmp_path is not None else "./data"
    values = dict(
        persistence_backend=backend,
        local_store_path=os.path.join(base, "local_storage.json"),
        remote_db_path=os.path.join(base, "documents.db"),
        cors_allow_origins=["*"],
        enable_basic_auth=False,
        basic_auth_username=None,
        basic_auth_password=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv_backend():
    return FailingKeyValueBackend()


@pytest.fixture
def task_store(kv_backend, clock):
    return TaskStore(KeyValueCollection(kv_backend, TASKS_KEY), clock=clock)


@pytest.fixture
def category_store(kv_backend):
    return CategoryStore(KeyValueCollection(kv_backend, CATEGORIES_KEY))


@pytest.fixture
def registry(tmp_path):
    reg = StoreRegistry(make_settings("memory", tmp_path))
    yield reg
    reg.close()


@pytest.fixture
def remote_registry(tmp_path):
    reg = StoreRegistry(make_settings("remote", tmp_path), documents=InMemoryDocumentBackend())
    yield reg
    reg.close()


def _client_for(reg: StoreRegistry):
    app.dependency_overrides[get_store_registry] = lambda: reg
    return TestClient(app)


@pytest.fixture
def client(registry):
    yield _client_for(registry)
    app.dependency_overrides.clear()


@pytest.fixture
def remote_client(remote_registry):
    yield _client_for(remote_registry)
    app.dependency_overrides.clear()
