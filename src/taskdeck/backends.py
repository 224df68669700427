from __future__ import annotations

import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

from .exceptions import PersistenceError, ReadOnlyError
from .models import parse_timestamp

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
ChangeCallback = Callable[[Optional[object]], None]

_DATETIME_FIELDS = ("created_at", "due_date", "deleted_at")


# PUBLIC_INTERFACE
def encode_record(record: Record) -> Record:
    """Return a JSON-safe copy of a record, datetimes as ISO8601 strings."""
    out = dict(record)
    for name in _DATETIME_FIELDS:
        value = out.get(name)
        if isinstance(value, datetime):
            out[name] = value.isoformat()
    return out


# PUBLIC_INTERFACE
def decode_record(data: Record) -> Record:
    """Inverse of encode_record; tolerates records written by older versions."""
    out = dict(data)
    for name in _DATETIME_FIELDS:
        value = out.get(name)
        if isinstance(value, str):
            out[name] = parse_timestamp(value)
    return out


# PUBLIC_INTERFACE
class KeyValueBackend(ABC):
    """Stores a whole collection of records under a fixed key."""

    @abstractmethod
    def read(self, key: str) -> Optional[List[Record]]:
        """Return the records stored under key, or None if the key was never written."""

    @abstractmethod
    def write(self, key: str, records: List[Record]) -> None:
        """Replace the records stored under key. Raises PersistenceError on failure."""


class MemoryKeyValueBackend(KeyValueBackend):
    """Process-local key-value store, used by default and in tests."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._data: Dict[str, List[Record]] = {}

    def read(self, key: str) -> Optional[List[Record]]:
        with self._lock:
            records = self._data.get(key)
            return None if records is None else [dict(r) for r in records]

    def write(self, key: str, records: List[Record]) -> None:
        with self._lock:
            self._data[key] = [dict(r) for r in records]


class JsonFileKeyValueBackend(KeyValueBackend):
    """
    Key-value store backed by a single JSON file of the form {key: [records]}.

    Writes go to a temporary file first and are swapped in with os.replace.
    """

    def __init__(self, path: str) -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._path = path
        self._lock = RLock()

    def _load(self) -> Dict[str, List[Record]]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read {self._path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def read(self, key: str) -> Optional[List[Record]]:
        with self._lock:
            records = self._load().get(key)
            return records if isinstance(records, list) else None

    def write(self, key: str, records: List[Record]) -> None:
        with self._lock:
            data = self._load()
            data[key] = records
            tmp_path = f"{self._path}.tmp"
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self._path)
            except OSError as e:
                raise PersistenceError(f"Could not write {self._path}: {e}") from e


# PUBLIC_INTERFACE
class DocumentBackend(ABC):
    """
    Per-user document collections with change subscription.

    Every successful write notifies subscribers of the affected
    (user_id, collection) with the origin token passed by the writer, so a
    writer can ignore its own echoes.
    """

    def __init__(self) -> None:
        self._sub_lock = RLock()
        self._subscribers: Dict[Tuple[str, str], List[ChangeCallback]] = {}

    @abstractmethod
    def list_documents(self, user_id: str, collection: str) -> List[Record]:
        """Return every document in the collection."""

    @abstractmethod
    def _put(self, user_id: str, collection: str, doc_id: str, data: Record) -> None:
        ...

    @abstractmethod
    def _delete(self, user_id: str, collection: str, doc_id: str) -> bool:
        ...

    def put_document(
        self, user_id: str, collection: str, doc_id: str, data: Record, origin: Optional[object] = None
    ) -> None:
        """Create or replace a document."""
        self._put(user_id, collection, doc_id, data)
        self._notify(user_id, collection, origin)

    def delete_document(self, user_id: str, collection: str, doc_id: str, origin: Optional[object] = None) -> bool:
        """Delete a document. Returns False if it did not exist."""
        deleted = self._delete(user_id, collection, doc_id)
        if deleted:
            self._notify(user_id, collection, origin)
        return deleted

    def subscribe(self, user_id: str, collection: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register a change callback; returns a function that unregisters it."""
        key = (user_id, collection)
        with self._sub_lock:
            self._subscribers.setdefault(key, []).append(callback)

        def _unsubscribe() -> None:
            with self._sub_lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def _notify(self, user_id: str, collection: str, origin: Optional[object]) -> None:
        with self._sub_lock:
            callbacks = list(self._subscribers.get((user_id, collection), []))
        for callback in callbacks:
            try:
                callback(origin)
            except Exception:
                logger.exception("Change subscriber failed for %s/%s", user_id, collection)


class InMemoryDocumentBackend(DocumentBackend):
    def __init__(self) -> None:
        super().__init__()
        self._lock = RLock()
        self._docs: Dict[Tuple[str, str], Dict[str, Record]] = {}

    def list_documents(self, user_id: str, collection: str) -> List[Record]:
        with self._lock:
            return [dict(d) for d in self._docs.get((user_id, collection), {}).values()]

    def _put(self, user_id: str, collection: str, doc_id: str, data: Record) -> None:
        with self._lock:
            self._docs.setdefault((user_id, collection), {})[doc_id] = dict(data)

    def _delete(self, user_id: str, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._docs.get((user_id, collection), {}).pop(doc_id, None) is not None


@dataclass(frozen=True)
class _Cols:
    table: str = "documents"
    user_id: str = "user_id"
    collection: str = "collection"
    doc_id: str = "doc_id"
    data: str = "data"
    updated_at: str = "updated_at"


_COLS = _Cols()


class SQLiteDocumentBackend(DocumentBackend):
    """
    Remote document store stand-in: JSON documents in SQLite keyed by
    (user_id, collection, doc_id).
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open document store: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Document store error: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.user_id} TEXT NOT NULL,
                    {_COLS.collection} TEXT NOT NULL,
                    {_COLS.doc_id} TEXT NOT NULL,
                    {_COLS.data} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL,
                    PRIMARY KEY ({_COLS.user_id}, {_COLS.collection}, {_COLS.doc_id})
                )
                """
            )

    def list_documents(self, user_id: str, collection: str) -> List[Record]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLS.data} FROM {_COLS.table} WHERE {_COLS.user_id} = ? AND {_COLS.collection} = ?",
                (user_id, collection),
            ).fetchall()
            return [json.loads(r[_COLS.data]) for r in rows]

    def _put(self, user_id: str, collection: str, doc_id: str, data: Record) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.user_id}, {_COLS.collection}, {_COLS.doc_id},
                    {_COLS.data}, {_COLS.updated_at})
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT ({_COLS.user_id}, {_COLS.collection}, {_COLS.doc_id})
                DO UPDATE SET {_COLS.data} = excluded.{_COLS.data}, {_COLS.updated_at} = excluded.{_COLS.updated_at}
                """,
                (user_id, collection, doc_id, json.dumps(data, ensure_ascii=False), datetime.now().isoformat()),
            )

    def _delete(self, user_id: str, collection: str, doc_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.user_id} = ? AND {_COLS.collection} = ? AND {_COLS.doc_id} = ?",
                (user_id, collection, doc_id),
            )
            return cur.rowcount > 0


# PUBLIC_INTERFACE
class Collection(ABC):
    """
    What a store sees of its persistence: load everything, commit a batch of
    changed records, and watch for changes made elsewhere.
    """

    writable = True

    @abstractmethod
    def load(self) -> Optional[List[Record]]:
        """Return stored records (decoded), or None if nothing was ever stored."""

    @abstractmethod
    def commit(self, changes: Dict[str, Optional[Record]], snapshot: List[Record]) -> List[str]:
        """
        Persist changed records (None meaning removed). snapshot is the full
        collection after the changes. Returns the ids whose writes failed.
        """

    def watch(self, callback: ChangeCallback) -> Callable[[], None]:
        return lambda: None


class KeyValueCollection(Collection):
    """Whole-collection writes under a fixed key; all-or-nothing per commit."""

    def __init__(self, backend: KeyValueBackend, key: str) -> None:
        self._backend = backend
        self._key = key

    def load(self) -> Optional[List[Record]]:
        records = self._backend.read(self._key)
        return None if records is None else [decode_record(r) for r in records]

    def commit(self, changes: Dict[str, Optional[Record]], snapshot: List[Record]) -> List[str]:
        try:
            self._backend.write(self._key, [encode_record(r) for r in snapshot])
        except PersistenceError:
            logger.exception("Write of %s failed", self._key)
            return list(changes)
        return []


class DocumentCollection(Collection):
    """One document write per changed record; failures are per record."""

    def __init__(self, backend: DocumentBackend, user_id: str, name: str) -> None:
        self._backend = backend
        self._user_id = user_id
        self._name = name
        self.origin = object()

    def load(self) -> Optional[List[Record]]:
        return [decode_record(d) for d in self._backend.list_documents(self._user_id, self._name)]

    def commit(self, changes: Dict[str, Optional[Record]], snapshot: List[Record]) -> List[str]:
        failed = []
        for doc_id, record in changes.items():
            try:
                if record is None:
                    self._backend.delete_document(self._user_id, self._name, doc_id, origin=self.origin)
                else:
                    self._backend.put_document(
                        self._user_id, self._name, doc_id, encode_record(record), origin=self.origin
                    )
            except PersistenceError:
                logger.exception("Write of %s/%s/%s failed", self._user_id, self._name, doc_id)
                failed.append(doc_id)
        return failed

    def watch(self, callback: ChangeCallback) -> Callable[[], None]:
        def _filtered(origin: Optional[object]) -> None:
            if origin is not self.origin:
                callback(origin)

        return self._backend.subscribe(self._user_id, self._name, _filtered)


class ReadOnlyCollection(Collection):
    """Used when no user is identified: always empty, rejects writes."""

    writable = False

    def load(self) -> Optional[List[Record]]:
        return []

    def commit(self, changes: Dict[str, Optional[Record]], snapshot: List[Record]) -> List[str]:
        raise ReadOnlyError()
