from __future__ import annotations

import logging
from collections import OrderedDict
from functools import lru_cache
from threading import RLock
from typing import Optional, Tuple

from .backends import (
    Collection,
    DocumentBackend,
    DocumentCollection,
    JsonFileKeyValueBackend,
    KeyValueBackend,
    KeyValueCollection,
    MemoryKeyValueBackend,
    ReadOnlyCollection,
    SQLiteDocumentBackend,
)
from .models import CATEGORIES_KEY, TASKS_KEY
from .settings import Settings, get_settings
from .stores import CategoryStore, TaskStore

logger = logging.getLogger(__name__)

LOCAL_NAMESPACE = "local"
MAX_CACHED_NAMESPACES = 256


# PUBLIC_INTERFACE
class StoreRegistry:
    """
    Builds one TaskStore/CategoryStore pair per namespace and caches it.

    With the 'memory' and 'local' backends there is a single namespace (the
    device). With 'remote' each identified user gets their own collections;
    an anonymous caller gets empty, read-only stores. At most
    max_namespaces pairs are kept; the least recently used pair is closed
    and dropped when a new one is opened.
    """

    def __init__(
        self,
        settings: Settings,
        key_value: Optional[KeyValueBackend] = None,
        documents: Optional[DocumentBackend] = None,
        max_namespaces: int = MAX_CACHED_NAMESPACES,
    ) -> None:
        self.settings = settings
        self._key_value = key_value
        self._documents = documents
        self._lock = RLock()
        self._max_namespaces = max(max_namespaces, 1)
        self._stores: "OrderedDict[Optional[str], Tuple[TaskStore, CategoryStore]]" = OrderedDict()

    @property
    def is_remote(self) -> bool:
        return self.settings.persistence_backend == "remote"

    def key_value_backend(self) -> KeyValueBackend:
        with self._lock:
            if self._key_value is None:
                if self.settings.persistence_backend == "memory":
                    self._key_value = MemoryKeyValueBackend()
                else:
                    self._key_value = JsonFileKeyValueBackend(self.settings.local_store_path)
            return self._key_value

    def document_backend(self) -> DocumentBackend:
        with self._lock:
            if self._documents is None:
                self._documents = SQLiteDocumentBackend(self.settings.remote_db_path)
            return self._documents

    def namespace(self, user_id: Optional[str]) -> Optional[str]:
        return user_id if self.is_remote else LOCAL_NAMESPACE

    def _collection(self, namespace: Optional[str], name: str, key: str) -> Collection:
        if not self.is_remote:
            return KeyValueCollection(self.key_value_backend(), key)
        if namespace is None:
            return ReadOnlyCollection()
        return DocumentCollection(self.document_backend(), namespace, name)

    def stores(self, user_id: Optional[str]) -> Tuple[TaskStore, CategoryStore]:
        namespace = self.namespace(user_id)
        with self._lock:
            pair = self._stores.get(namespace)
            if pair is not None:
                self._stores.move_to_end(namespace)
            else:
                logger.debug("Opening stores for namespace %r (%s)", namespace, self.settings.persistence_backend)
                tasks = TaskStore(
                    self._collection(namespace, "tasks", TASKS_KEY),
                    max_text_length=self.settings.max_task_text_length,
                )
                categories = CategoryStore(
                    self._collection(namespace, "categories", CATEGORIES_KEY),
                    seed_defaults=not self.is_remote,
                )
                pair = (tasks, categories)
                self._stores[namespace] = pair
                while len(self._stores) > self._max_namespaces:
                    evicted, (old_tasks, old_categories) = self._stores.popitem(last=False)
                    logger.debug("Closing idle stores for namespace %r", evicted)
                    old_tasks.close()
                    old_categories.close()
            return pair

    def task_store(self, user_id: Optional[str]) -> TaskStore:
        return self.stores(user_id)[0]

    def category_store(self, user_id: Optional[str]) -> CategoryStore:
        return self.stores(user_id)[1]

    def close(self) -> None:
        with self._lock:
            for tasks, categories in self._stores.values():
                tasks.close()
                categories.close()
            self._stores.clear()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_registry() -> StoreRegistry:
    """Process-wide registry built from environment settings."""
    return StoreRegistry(get_settings())


def reset_registry() -> None:
    """Drop the cached registry so the next call re-reads settings."""
    if get_registry.cache_info().currsize:
        get_registry().close()
    get_registry.cache_clear()
