import json
from datetime import datetime, timezone

import pytest

from taskdeck.backends import (
    DocumentCollection,
    InMemoryDocumentBackend,
    JsonFileKeyValueBackend,
    KeyValueCollection,
    SQLiteDocumentBackend,
    decode_record,
    encode_record,
)
from taskdeck.exceptions import PersistenceError
from taskdeck.migration import has_local_data, migrate_local_to_remote
from taskdeck.models import TASKS_KEY
from taskdeck.stores import TaskStore

from conftest import FakeClock


def test_encode_decode_datetimes():
    record = {"id": "1", "created_at": datetime(2025, 1, 2, 3, 4, 5), "due_date": None, "text": "x"}
    encoded = encode_record(record)
    assert encoded["created_at"] == "2025-01-02T03:04:05"
    assert json.dumps(encoded)
    assert decode_record(encoded) == record


def test_decode_utc_suffix_to_local_time():
    decoded = decode_record({"id": "1", "created_at": "2025-01-02T03:04:05Z"})
    expected = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert decoded["created_at"] == expected


class TestJsonFileKeyValueBackend:
    def test_read_missing_key(self, tmp_path):
        backend = JsonFileKeyValueBackend(str(tmp_path / "store.json"))
        assert backend.read(TASKS_KEY) is None

    def test_write_keeps_other_keys(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        backend = JsonFileKeyValueBackend(str(path))
        backend.write("one", [{"id": "a"}])
        backend.write("two", [{"id": "b"}])
        assert backend.read("one") == [{"id": "a"}]
        assert json.loads(path.read_text(encoding="utf-8")) == {"one": [{"id": "a"}], "two": [{"id": "b"}]}

    def test_corrupt_file_raises_persistence_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonFileKeyValueBackend(str(path)).read(TASKS_KEY)

    def test_task_store_survives_restart(self, tmp_path):
        path = str(tmp_path / "store.json")
        store = TaskStore(KeyValueCollection(JsonFileKeyValueBackend(path), TASKS_KEY), clock=FakeClock())
        task = store.add("Survive", priority="high")
        reopened = TaskStore(KeyValueCollection(JsonFileKeyValueBackend(path), TASKS_KEY))
        assert reopened.get(task["id"]) == task


class TestSQLiteDocumentBackend:
    def test_put_list_delete(self, tmp_path):
        backend = SQLiteDocumentBackend(str(tmp_path / "docs.db"))
        backend.put_document("alice", "tasks", "t1", {"id": "t1", "text": "one"})
        backend.put_document("alice", "tasks", "t1", {"id": "t1", "text": "one, edited"})
        backend.put_document("bob", "tasks", "t2", {"id": "t2", "text": "two"})
        assert backend.list_documents("alice", "tasks") == [{"id": "t1", "text": "one, edited"}]
        assert backend.delete_document("alice", "tasks", "t1") is True
        assert backend.delete_document("alice", "tasks", "t1") is False
        assert backend.list_documents("alice", "tasks") == []
        assert len(backend.list_documents("bob", "tasks")) == 1

    def test_subscribers_receive_origin(self, tmp_path):
        backend = SQLiteDocumentBackend(str(tmp_path / "docs.db"))
        seen = []
        unsubscribe = backend.subscribe("alice", "tasks", seen.append)
        token = object()
        backend.put_document("alice", "tasks", "t1", {"id": "t1"}, origin=token)
        backend.put_document("bob", "tasks", "t1", {"id": "t1"})
        backend.delete_document("alice", "tasks", "missing")
        unsubscribe()
        backend.delete_document("alice", "tasks", "t1")
        assert seen == [token]

    def test_task_store_round_trip(self, tmp_path):
        backend = SQLiteDocumentBackend(str(tmp_path / "docs.db"))
        store = TaskStore(DocumentCollection(backend, "alice", "tasks"), clock=FakeClock())
        task = store.add("Remote", due_date=datetime(2025, 6, 1, 8, 30))
        store.archive(task["id"])
        reopened = TaskStore(DocumentCollection(SQLiteDocumentBackend(str(tmp_path / "docs.db")), "alice", "tasks"))
        assert reopened.archived()[0]["due_date"] == datetime(2025, 6, 1, 8, 30)
        assert reopened.list() == []


class TestMigration:
    def test_migrates_and_clears_local(self, tmp_path):
        local = JsonFileKeyValueBackend(str(tmp_path / "local.json"))
        local_store = TaskStore(KeyValueCollection(local, TASKS_KEY), clock=FakeClock())
        first = local_store.add("First")
        local_store.add("Second", status="completed")
        documents = InMemoryDocumentBackend()
        assert has_local_data(local) is True

        assert migrate_local_to_remote(local, documents, "alice") == 2
        assert has_local_data(local) is False

        remote = TaskStore(DocumentCollection(documents, "alice", "tasks"))
        assert [t["text"] for t in remote.list()] == ["First", "Second"]
        assert remote.get(first["id"])["created_at"] == first["created_at"]

    def test_older_records_get_defaults(self, tmp_path):
        local = JsonFileKeyValueBackend(str(tmp_path / "local.json"))
        local.write(TASKS_KEY, [{"id": "old", "text": "Legacy", "completed": True, "created_at": "2024-12-01T10:00:00"}])
        documents = InMemoryDocumentBackend()
        migrate_local_to_remote(local, documents, "alice")
        task = TaskStore(DocumentCollection(documents, "alice", "tasks")).get("old")
        assert task["status"] == "completed"
        assert task["is_archived"] is False
        assert task["order"] == datetime(2024, 12, 1, 10).timestamp() * 1000

    def test_nothing_to_migrate(self, tmp_path):
        local = JsonFileKeyValueBackend(str(tmp_path / "local.json"))
        assert migrate_local_to_remote(local, InMemoryDocumentBackend(), "alice") == 0
