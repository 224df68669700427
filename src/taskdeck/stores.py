"""
Task and category stores.

Each store keeps two layers: the confirmed state last acknowledged by the
backend, and optimistic entries for writes still in flight. Reads see the
optimistic projection. A successful write moves the entry into the
confirmed layer; a failed write drops it, which rolls the projection back.
Subscribers are called with (event, payload) after every successful change
and with ("synced", None) when the backend reports a change made elsewhere.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional

from .backends import Collection
from .exceptions import (
    CategoryInUseError,
    DuplicateCategoryError,
    InvalidInputError,
    PersistenceError,
    ReadOnlyError,
    ReservedCategoryError,
)
from .filters import get_task_stats
from .models import (
    DEFAULT_CATEGORY_COLOR,
    MAX_TASK_TEXT_LENGTH,
    UNCATEGORIZED_ID,
    CategoryEntity,
    TaskEntity,
    default_categories,
    task_sort_key,
    to_local_naive,
    uncategorized,
)
from .reorder import compute_reorder, move_to_index
from .validation import (
    validate_category_label,
    validate_color,
    validate_priority,
    validate_status,
    validate_task_text,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Any], None]

_DETAIL_FIELDS = ("status", "category", "priority", "due_date")


class _CollectionStore:
    """Shared optimistic/confirmed bookkeeping and observer plumbing."""

    kind = "record"

    def __init__(self, collection: Collection) -> None:
        self._lock = RLock()
        self._write_lock = RLock()
        self._collection = collection
        self._subscribers: List[Subscriber] = []
        self._confirmed: Dict[str, Dict[str, Any]] = {}
        self._pending: Dict[str, Optional[Dict[str, Any]]] = {}
        self._load()
        self._unwatch = collection.watch(self._on_external_change)

    def _initial_records(self, loaded: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        return loaded or []

    def _load(self) -> None:
        records = self._initial_records(self._collection.load())
        with self._lock:
            self._confirmed = {r["id"]: self._normalize(r) for r in records}

    def _normalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return record

    def _on_external_change(self, origin: Optional[object]) -> None:
        logger.debug("External change to %s collection, reloading", self.kind)
        self._load()
        self._notify("synced", None)

    def close(self) -> None:
        self._unwatch()

    @property
    def writable(self) -> bool:
        return self._collection.writable

    # PUBLIC_INTERFACE
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback(event, payload); returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, event: str, payload: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers)
        for callback in callbacks:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed on %s event", event)

    def _projection(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            merged = dict(self._confirmed)
            for record_id, record in self._pending.items():
                if record is None:
                    merged.pop(record_id, None)
                else:
                    merged[record_id] = record
            return merged

    def _get(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._projection().get(record_id)
        return None if record is None else dict(record)

    def _require_writable(self) -> None:
        if not self._collection.writable:
            raise ReadOnlyError()

    def _commit(self, changes: Dict[str, Optional[Dict[str, Any]]], event: str, payload: Any) -> List[str]:
        """
        Apply changes optimistically, persist them, then confirm or roll back
        per record. Returns the ids that were persisted.

        Raises:
            PersistenceError listing the ids whose writes failed; the other
            ids stay applied.
        """
        if not changes:
            return []
        self._require_writable()
        # commits are serialized; a snapshot is confirmed state plus these changes
        with self._write_lock:
            with self._lock:
                for record_id, record in changes.items():
                    self._pending[record_id] = record
                snapshot = self._snapshot(changes)

            try:
                failed = set(self._collection.commit(changes, snapshot))
            except Exception:
                self._settle(changes)
                raise
            self._settle(changes, failed)

        succeeded = [i for i in changes if i not in failed]
        if succeeded:
            logger.debug("%s %s: %s", self.kind, event, ", ".join(succeeded))
            self._notify(event, payload)
        if failed:
            raise PersistenceError(
                f"Could not save {len(failed)} {self.kind}(s); changes were rolled back",
                failed_ids=sorted(failed),
            )
        return succeeded

    def _snapshot(self, changes: Dict[str, Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Confirmed records with only this commit's changes applied."""
        merged = dict(self._confirmed)
        for record_id, record in changes.items():
            if record is None:
                merged.pop(record_id, None)
            else:
                merged[record_id] = record
        return list(merged.values())

    def _settle(self, changes: Dict[str, Optional[Dict[str, Any]]], failed: Optional[set] = None) -> None:
        """Drop optimistic entries; confirm the ones that persisted (none when failed is None)."""
        with self._lock:
            for record_id, record in changes.items():
                if self._pending.get(record_id, ...) is record:
                    del self._pending[record_id]
                if failed is None or record_id in failed:
                    continue
                if record is None:
                    self._confirmed.pop(record_id, None)
                else:
                    self._confirmed[record_id] = record


# PUBLIC_INTERFACE
class TaskStore(_CollectionStore):
    """
    Holds one user's tasks.

    Mutations on an id the store does not hold are no-ops and return None
    (or are skipped in bulk operations). Validation failures raise
    InvalidInputError before anything changes.
    """

    kind = "task"

    def __init__(
        self,
        collection: Collection,
        max_text_length: int = MAX_TASK_TEXT_LENGTH,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._max_text_length = max_text_length
        self._clock = clock or datetime.now
        super().__init__(collection)

    def _normalize(self, record: Dict[str, Any]) -> Dict[str, Any]:
        task = dict(record)
        task.setdefault("completed", False)
        task.setdefault("status", "completed" if task["completed"] else "pending")
        task.setdefault("category", None)
        task.setdefault("priority", None)
        task.setdefault("due_date", None)
        task.setdefault("deleted_at", None)
        task.setdefault("is_archived", task["deleted_at"] is not None)
        if task.get("order") is None:
            task["order"] = task["created_at"].timestamp() * 1000
        return task

    # Reads

    def get(self, task_id: str) -> Optional[TaskEntity]:
        return self._get(task_id)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    def list(self, include_archived: bool = False) -> List[TaskEntity]:
        """Tasks in canonical order; archived tasks only when asked for."""
        tasks = [dict(t) for t in self._projection().values() if include_archived or not t["is_archived"]]
        return sorted(tasks, key=task_sort_key)  # type: ignore[arg-type]

    def archived(self) -> List[TaskEntity]:
        return [t for t in self.list(include_archived=True) if t["is_archived"]]

    # PUBLIC_INTERFACE
    def stats(self) -> Dict[str, int]:
        """Counts of all, active and completed non-archived tasks."""
        return get_task_stats(self.list())

    # Single-task mutations

    # PUBLIC_INTERFACE
    def add(
        self,
        text: str,
        category: Optional[str] = None,
        due_date: Optional[datetime] = None,
        priority: Optional[str] = None,
        status: Optional[str] = None,
    ) -> TaskEntity:
        """Validate and create a task ordered after everything created before it."""
        clean_text = validate_task_text(text, self._max_text_length)
        validate_priority(priority)
        validate_status(status)
        self._require_writable()

        now = self._clock()
        status = status or "pending"
        task: TaskEntity = {
            "id": uuid.uuid4().hex,
            "text": clean_text,
            "completed": status == "completed",
            "status": status,
            "category": category or None,
            "priority": priority,
            "due_date": None if due_date is None else to_local_naive(due_date),
            "created_at": now,
            "order": now.timestamp() * 1000,
            "deleted_at": None,
            "is_archived": False,
        }
        self._commit({task["id"]: task}, "added", task["id"])  # type: ignore[dict-item]
        return dict(task)  # type: ignore[return-value]

    # PUBLIC_INTERFACE
    def toggle(self, task_id: str) -> Optional[TaskEntity]:
        """Flip completion; status follows (completed <-> pending)."""
        task = self.get(task_id)
        if task is None:
            return None
        updated = _with_completed(task, not task["completed"])
        self._commit({task_id: updated}, "toggled", task_id)  # type: ignore[dict-item]
        return updated

    # PUBLIC_INTERFACE
    def edit(self, task_id: str, new_text: str) -> Optional[TaskEntity]:
        """Replace the text only."""
        clean_text = validate_task_text(new_text, self._max_text_length)
        task = self.get(task_id)
        if task is None:
            return None
        task["text"] = clean_text
        self._commit({task_id: task}, "edited", task_id)  # type: ignore[dict-item]
        return task

    # PUBLIC_INTERFACE
    def update_details(self, task_id: str, **updates: Any) -> Optional[TaskEntity]:
        """
        Merge status, category, priority and/or due_date into a task.

        An explicit None clears category, priority or due_date. Setting
        status to 'completed' marks the task completed; any other status
        marks it not completed.
        """
        unknown = set(updates) - set(_DETAIL_FIELDS)
        if unknown:
            raise InvalidInputError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if "status" in updates:
            if updates["status"] is None:
                raise InvalidInputError("status cannot be cleared")
            validate_status(updates["status"])
        validate_priority(updates.get("priority"))

        task = self.get(task_id)
        if task is None:
            return None
        for name, value in updates.items():
            task[name] = value  # type: ignore[literal-required]
        if "category" in updates:
            task["category"] = updates["category"] or None
        if updates.get("due_date") is not None:
            task["due_date"] = to_local_naive(updates["due_date"])
        if "status" in updates:
            task["completed"] = updates["status"] == "completed"
        self._commit({task_id: task}, "updated", task_id)  # type: ignore[dict-item]
        return task

    # PUBLIC_INTERFACE
    def archive(self, task_id: str) -> Optional[TaskEntity]:
        """Soft delete: hide the task from active views, keeping it restorable."""
        task = self.get(task_id)
        if task is None:
            return None
        if task["is_archived"]:
            return task
        task["is_archived"] = True
        task["deleted_at"] = self._clock()
        self._commit({task_id: task}, "archived", task_id)  # type: ignore[dict-item]
        return task

    delete = archive

    def restore(self, task_id: str) -> Optional[TaskEntity]:
        task = self.get(task_id)
        if task is None:
            return None
        if not task["is_archived"]:
            return task
        task["is_archived"] = False
        task["deleted_at"] = None
        self._commit({task_id: task}, "restored", task_id)  # type: ignore[dict-item]
        return task

    # PUBLIC_INTERFACE
    def permanent_delete(self, task_id: str) -> bool:
        """Irreversibly remove a task. Returns False if it did not exist."""
        if self.get(task_id) is None:
            return False
        self._commit({task_id: None}, "deleted", task_id)
        return True

    # PUBLIC_INTERFACE
    def reorder(self, active_id: str, over_id: str) -> Dict[str, float]:
        """
        Place active_id immediately before over_id among non-archived tasks.
        Returns the order values that changed; empty when nothing moved, so
        repeating a reorder is a no-op.
        """
        changes = compute_reorder(self.list(), active_id, over_id)
        return self._apply_orders(changes, active_id)

    def move(self, task_id: str, index: int) -> Dict[str, float]:
        """Place a task at a zero-based index of the non-archived list."""
        changes = move_to_index(self.list(), task_id, index)
        return self._apply_orders(changes, task_id)

    def _apply_orders(self, changes: Dict[str, float], active_id: str) -> Dict[str, float]:
        if not changes:
            return {}
        records = {}
        for task_id, order in changes.items():
            task = self.get(task_id)
            if task is not None:
                task["order"] = order
                records[task_id] = task
        self._commit(records, "reordered", active_id)  # type: ignore[arg-type]
        return changes

    # Bulk mutations

    def _bulk(self, ids: Iterable[str], change: Callable[[TaskEntity], Optional[TaskEntity]], event: str) -> List[str]:
        records: Dict[str, Optional[Dict[str, Any]]] = {}
        for task_id in dict.fromkeys(ids):
            task = self.get(task_id)
            if task is None:
                continue
            records[task_id] = change(task)  # type: ignore[assignment]
        return self._commit(records, event, list(records))

    # PUBLIC_INTERFACE
    def bulk_complete(self, ids: Iterable[str]) -> List[str]:
        """Mark every known id completed; unknown ids are skipped."""
        return self._bulk(ids, lambda t: _with_completed(t, True), "bulk_completed")

    def bulk_uncomplete(self, ids: Iterable[str]) -> List[str]:
        return self._bulk(ids, lambda t: _with_completed(t, False), "bulk_uncompleted")

    def bulk_archive(self, ids: Iterable[str]) -> List[str]:
        now = self._clock()

        def _archive(task: TaskEntity) -> TaskEntity:
            if not task["is_archived"]:
                task["is_archived"] = True
                task["deleted_at"] = now
            return task

        return self._bulk(ids, _archive, "bulk_archived")

    bulk_delete = bulk_archive

    def bulk_restore(self, ids: Iterable[str]) -> List[str]:
        def _restore(task: TaskEntity) -> TaskEntity:
            task["is_archived"] = False
            task["deleted_at"] = None
            return task

        return self._bulk(ids, _restore, "bulk_restored")

    def bulk_permanent_delete(self, ids: Iterable[str]) -> List[str]:
        return self._bulk(ids, lambda t: None, "bulk_deleted")

    # PUBLIC_INTERFACE
    def bulk_category_change(self, ids: Iterable[str], category: Optional[str]) -> List[str]:
        """Set (or with an empty value, clear) the category of every known id."""
        def _recategorize(task: TaskEntity) -> TaskEntity:
            task["category"] = category or None
            return task

        return self._bulk(ids, _recategorize, "bulk_recategorized")


def _with_completed(task: TaskEntity, completed: bool) -> TaskEntity:
    updated = dict(task)
    updated["completed"] = completed
    if completed:
        updated["status"] = "completed"
    elif updated["status"] == "completed":
        updated["status"] = "pending"
    return updated  # type: ignore[return-value]


# PUBLIC_INTERFACE
class CategoryStore(_CollectionStore):
    """
    Holds one user's categories.

    The reserved 'uncategorized' category is present in every listing even
    when the backend has never stored it; it cannot be renamed or deleted.
    """

    kind = "category"

    def __init__(self, collection: Collection, seed_defaults: bool = True) -> None:
        self._seed_defaults = seed_defaults
        super().__init__(collection)

    def _initial_records(self, loaded: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        if loaded is None and self._seed_defaults:
            return [dict(c) for c in default_categories()]
        return loaded or []

    # PUBLIC_INTERFACE
    def list(self) -> List[CategoryEntity]:
        categories = [dict(c) for c in self._projection().values()]
        if not any(c["id"] == UNCATEGORIZED_ID for c in categories):
            categories.insert(0, dict(uncategorized()))
        return categories  # type: ignore[return-value]

    def get(self, category_id: str) -> Optional[CategoryEntity]:
        for category in self.list():
            if category["id"] == category_id:
                return category
        return None

    # PUBLIC_INTERFACE
    def is_name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Case-insensitive label check, ignoring the category exclude_id."""
        needle = (name or "").strip().lower()
        return any(c["label"].lower() == needle and c["id"] != exclude_id for c in self.list())

    # PUBLIC_INTERFACE
    def add(self, label: str, color: str = DEFAULT_CATEGORY_COLOR) -> CategoryEntity:
        """
        Create a category.

        Raises:
            InvalidInputError for an empty label or malformed color.
            DuplicateCategoryError if the label exists in any letter case.
        """
        clean_label = validate_category_label(label)
        clean_color = validate_color(color)
        if self.is_name_taken(clean_label):
            logger.info("Rejected duplicate category %r", clean_label)
            raise DuplicateCategoryError(clean_label)
        category: CategoryEntity = {"id": uuid.uuid4().hex, "label": clean_label, "color": clean_color}
        self._commit({category["id"]: dict(category)}, "added", category["id"])
        return category

    def rename(self, category_id: str, new_label: str) -> Optional[CategoryEntity]:
        if category_id == UNCATEGORIZED_ID:
            raise ReservedCategoryError("rename")
        clean_label = validate_category_label(new_label)
        category = self.get(category_id)
        if category is None:
            return None
        if self.is_name_taken(clean_label, exclude_id=category_id):
            logger.info("Rejected rename of %s to duplicate %r", category_id, clean_label)
            raise DuplicateCategoryError(clean_label)
        category["label"] = clean_label
        self._commit({category_id: dict(category)}, "renamed", category_id)
        return category

    def recolor(self, category_id: str, new_color: str) -> Optional[CategoryEntity]:
        clean_color = validate_color(new_color)
        category = self.get(category_id)
        if category is None:
            return None
        category["color"] = clean_color
        self._commit({category_id: dict(category)}, "recolored", category_id)
        return category

    # PUBLIC_INTERFACE
    def delete(self, category_id: str, current_tasks: Iterable[TaskEntity]) -> bool:
        """
        Delete a category that no task references.

        Raises:
            ReservedCategoryError for 'uncategorized'.
            CategoryInUseError if any task in current_tasks uses it.
        """
        if category_id == UNCATEGORIZED_ID:
            raise ReservedCategoryError("delete")
        if any(t.get("category") == category_id for t in current_tasks):
            logger.info("Rejected delete of in-use category %s", category_id)
            raise CategoryInUseError(category_id)
        if self.get(category_id) is None:
            return False
        self._commit({category_id: None}, "deleted", category_id)
        return True

    def clear(self) -> List[str]:
        """Remove every stored category; 'uncategorized' reappears on read."""
        ids = list(self._projection())
        return self._commit({i: None for i in ids}, "cleared", ids)
