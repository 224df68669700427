"""
Drag-and-drop placement for tasks.

Dropping a task on a target puts it immediately before the target in the
canonically sorted list (order, created_at, id). A drop whose task already
sits right before its target changes nothing, so repeating a drop is a
no-op. The end of the list is reached with move_to_index.

Only the moved task gets a new order value, the midpoint of its new
neighbours. When no value fits strictly between them (equal orders or
exhausted float precision) the whole list is renumbered ORDER_STEP apart.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import TaskEntity, task_sort_key

ORDER_STEP = 1000.0


def _renumber(moved: List[TaskEntity], base: float) -> Dict[str, float]:
    changes: Dict[str, float] = {}
    for i, task in enumerate(moved):
        value = base + i * ORDER_STEP
        if task["order"] != value:
            changes[task["id"]] = value
    return changes


def _place(ordered: List[TaskEntity], old_index: int, new_index: int) -> Dict[str, float]:
    moved = list(ordered)
    active = moved.pop(old_index)
    moved.insert(new_index, active)

    prev: Optional[TaskEntity] = moved[new_index - 1] if new_index > 0 else None
    nxt: Optional[TaskEntity] = moved[new_index + 1] if new_index + 1 < len(moved) else None

    if prev is None and nxt is not None:
        candidate = nxt["order"] - ORDER_STEP
        fits = candidate < nxt["order"]
    elif nxt is None and prev is not None:
        candidate = prev["order"] + ORDER_STEP
        fits = candidate > prev["order"]
    elif prev is not None and nxt is not None:
        candidate = (prev["order"] + nxt["order"]) / 2
        fits = prev["order"] < candidate < nxt["order"]
    else:
        return {}

    if fits:
        return {active["id"]: candidate}
    return _renumber(moved, ordered[0]["order"])


# PUBLIC_INTERFACE
def compute_reorder(tasks: Iterable[TaskEntity], active_id: str, over_id: str) -> Dict[str, float]:
    """
    Compute new order values after dropping active_id onto over_id.

    The active task lands immediately before over_id.

    Returns:
        Mapping of task id to new order for every task whose order changes.
        Empty when either id is unknown, both ids are the same, or active_id
        already sits right before over_id.
    """
    ordered = sorted(tasks, key=task_sort_key)
    ids = [t["id"] for t in ordered]
    if active_id == over_id or active_id not in ids or over_id not in ids:
        return {}
    current = ids.index(active_id)
    target = ids.index(over_id)
    if current == target - 1:
        return {}
    # index of over_id once active_id has been taken out
    if current < target:
        target -= 1
    return _place(ordered, current, target)


# PUBLIC_INTERFACE
def move_to_index(tasks: Iterable[TaskEntity], active_id: str, index: int) -> Dict[str, float]:
    """
    Compute new order values placing active_id at a target index of the
    sorted list. The index is clamped to the list bounds; moving a task to
    the index it already holds changes nothing.
    """
    ordered = sorted(tasks, key=task_sort_key)
    ids = [t["id"] for t in ordered]
    if active_id not in ids:
        return {}
    target = min(max(index, 0), len(ordered) - 1)
    current = ids.index(active_id)
    if current == target:
        return {}
    return _place(ordered, current, target)


def apply_orders(tasks: Iterable[TaskEntity], changes: Dict[str, float]) -> List[TaskEntity]:
    """Return copies of tasks with the given order changes applied, sorted canonically."""
    updated = []
    for task in tasks:
        copy = task.copy()
        if task["id"] in changes:
            copy["order"] = changes[task["id"]]
        updated.append(copy)
    return sorted(updated, key=task_sort_key)
