"""
Pure helpers computing derived views of a task collection.

Nothing here mutates its inputs; every function returns new lists or dicts
and is safe to call on every request.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import InvalidInputError
from .models import TASK_FILTERS, TASK_PRIORITIES, UNCATEGORIZED_ID, TaskEntity, task_sort_key

SORT_FIELDS = ("order", "created_at", "due_date", "deleted_at", "text", "priority", "category")

_PRIORITY_RANK = {p: i for i, p in enumerate(TASK_PRIORITIES)}


def _status_matches(task: TaskEntity, status: str) -> bool:
    if status == "active":
        return not task["completed"]
    if status == "completed":
        return task["completed"]
    return True


def _category_matches(task: TaskEntity, category: str) -> bool:
    if not category:
        return True
    if category == UNCATEGORIZED_ID:
        return task.get("category") in (None, UNCATEGORIZED_ID)
    return task.get("category") == category


# PUBLIC_INTERFACE
def filter_tasks(
    tasks: Iterable[TaskEntity],
    status: str = "all",
    search: str = "",
    category: str = "",
    priority: str = "",
) -> List[TaskEntity]:
    """
    Return the tasks matching every active filter, in input order.

    Args:
        tasks: Collection to filter, typically already in store order.
        status: 'all', 'active' (not completed) or 'completed'.
        search: Case-insensitive substring of the task text. Empty matches all.
        category: Category id; empty disables the filter. 'uncategorized'
            also matches tasks without a category.
        priority: Priority value; empty disables the filter.

    Raises:
        InvalidInputError for an unknown status value.
    """
    status = status or "all"
    if status not in TASK_FILTERS:
        raise InvalidInputError(f"status must be one of {', '.join(TASK_FILTERS)}")
    needle = (search or "").strip().lower()

    result = []
    for task in tasks:
        if not _status_matches(task, status):
            continue
        if needle and needle not in task["text"].lower():
            continue
        if not _category_matches(task, category):
            continue
        if priority and task.get("priority") != priority:
            continue
        result.append(task)
    return result


# PUBLIC_INTERFACE
def get_task_stats(tasks: Iterable[TaskEntity]) -> Dict[str, int]:
    """Counts of all, active and completed tasks."""
    items = list(tasks)
    completed = sum(1 for t in items if t["completed"])
    return {"all": len(items), "active": len(items) - completed, "completed": completed}


def sort_tasks_by_order(tasks: Iterable[TaskEntity]) -> List[TaskEntity]:
    return sorted(tasks, key=task_sort_key)


def _field_value(task: TaskEntity, field: str):
    if field == "text":
        return task["text"].lower()
    if field == "priority":
        p = task.get("priority")
        return None if p is None else _PRIORITY_RANK[p]
    return task.get(field)  # type: ignore[misc]


# PUBLIC_INTERFACE
def sort_tasks(tasks: Iterable[TaskEntity], field: str = "order", descending: bool = False) -> List[TaskEntity]:
    """
    Sort tasks by one of SORT_FIELDS. Tasks missing the field always come
    last; ties keep canonical store order.
    """
    if field not in SORT_FIELDS:
        raise InvalidInputError(f"sort must be one of {', '.join(SORT_FIELDS)}")
    ordered = sort_tasks_by_order(tasks)
    if field == "order":
        return list(reversed(ordered)) if descending else ordered

    present = [t for t in ordered if _field_value(t, field) is not None]
    missing = [t for t in ordered if _field_value(t, field) is None]
    present.sort(key=lambda t: _field_value(t, field), reverse=descending)
    return present + missing


def group_tasks_by_category(tasks: Iterable[TaskEntity]) -> Dict[str, List[TaskEntity]]:
    groups: Dict[str, List[TaskEntity]] = {}
    for task in tasks:
        groups.setdefault(task.get("category") or UNCATEGORIZED_ID, []).append(task)
    return groups


def group_tasks_by_priority(tasks: Iterable[TaskEntity]) -> Dict[str, List[TaskEntity]]:
    groups: Dict[str, List[TaskEntity]] = {}
    for task in tasks:
        groups.setdefault(task.get("priority") or "none", []).append(task)
    return groups


# PUBLIC_INTERFACE
def overdue_tasks(tasks: Iterable[TaskEntity], now: Optional[datetime] = None) -> List[TaskEntity]:
    """Incomplete tasks whose due date has passed."""
    now = now or datetime.now()
    return [
        t for t in tasks
        if not t["completed"] and t.get("due_date") is not None and t["due_date"] < now
    ]


# PUBLIC_INTERFACE
def filter_archived(
    tasks: Iterable[TaskEntity],
    search: str = "",
    category: str = "",
    archived_on: Optional[date] = None,
) -> List[TaskEntity]:
    """
    Filter for the archive view: search matches text or id, optional
    category, optional calendar day the task was archived on.
    """
    needle = (search or "").strip().lower()
    result = []
    for task in tasks:
        if needle and needle not in task["text"].lower() and needle not in task["id"].lower():
            continue
        if not _category_matches(task, category):
            continue
        if archived_on is not None:
            deleted_at = task.get("deleted_at")
            if deleted_at is None or deleted_at.date() != archived_on:
                continue
        result.append(task)
    return result


def paginate(items: Sequence[TaskEntity], limit: int, offset: int) -> Tuple[List[TaskEntity], int]:
    start = max(offset, 0)
    end = start + max(limit, 0)
    return list(items[start:end]), len(items)
