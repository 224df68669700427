from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_task_store
from ..filters import SORT_FIELDS, filter_archived, filter_tasks, overdue_tasks, paginate, sort_tasks
from ..schemas import (
    BulkCategoryChange,
    BulkIds,
    BulkResult,
    MoveRequest,
    ReorderRequest,
    ReorderResult,
    TaskCreate,
    TaskDetailsUpdate,
    TaskOut,
    TaskStats,
    TaskTextUpdate,
)
from ..stores import TaskStore

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """
    items: List[TaskOut] = Field(..., description="List of tasks")
    total: int = Field(..., description="Total number of items matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")


def _normalize_sort(sort: Optional[str], order: Optional[str], default: str) -> tuple:
    """
    Turn sort ('field' or '-field') plus an optional order override into
    (field, descending). Unknown fields fall back to the default.
    """
    normalized = (sort or default).strip().lower()
    descending = normalized.startswith("-")
    field = normalized.lstrip("-")
    if field not in SORT_FIELDS:
        field, descending = default.lstrip("-"), default.startswith("-")
    if order:
        ord_norm = order.strip().lower()
        if ord_norm not in {"asc", "desc"}:
            raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")
        descending = ord_norm == "desc"
    return field, descending


def _page(tasks, limit: int, offset: int) -> PaginationEnvelope:
    page, total = paginate(tasks, limit, offset)
    return PaginationEnvelope(
        items=[TaskOut(**t) for t in page],  # type: ignore[arg-type]
        total=total,
        limit=limit,
        offset=offset,
    )


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task ordered after all existing tasks.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error (empty, too long or unsafe text)"},
    },
)
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    """
    Create a new task.
    """
    created = store.add(
        payload.text,
        category=payload.category,
        due_date=payload.due_date,
        priority=payload.priority,
        status=payload.status,
    )
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Tasks",
    description=(
        "List non-archived tasks with filters and pagination.\n\n"
        "Query parameters:\n"
        "- status: all, active or completed\n"
        "- q: case-insensitive search in task text\n"
        "- category: category id ('uncategorized' also matches tasks without one)\n"
        "- priority: low, medium or high\n"
        "- sort: order, created_at, due_date, text, priority or category, '-' prefix for descending\n"
        "- order: asc or desc (if provided, it overrides the direction in sort)\n"
        "- limit / offset: pagination\n\n"
        "Returns a pagination envelope with items and total count."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    status_filter: str = Query("all", alias="status", description="all, active or completed"),
    q: Optional[str] = Query(None, description="Search text"),
    category: Optional[str] = Query(None, description="Category id"),
    priority: Optional[str] = Query(None, description="Priority"),
    sort: Optional[str] = Query("order", description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    store: TaskStore = Depends(get_task_store),
) -> PaginationEnvelope:
    """
    List tasks in store order unless another sort is requested.
    """
    field, descending = _normalize_sort(sort, order, "order")
    visible = filter_tasks(store.list(), status_filter, q or "", category or "", priority or "")
    return _page(sort_tasks(visible, field, descending), limit, offset)


# PUBLIC_INTERFACE
@router.get("/stats", response_model=TaskStats, summary="Task Statistics")
def task_stats(store: TaskStore = Depends(get_task_store)) -> TaskStats:
    """
    Counts of all, active and completed non-archived tasks.
    """
    return TaskStats(**store.stats())


@router.get(
    "/overdue",
    response_model=PaginationEnvelope,
    summary="List Overdue Tasks",
    description="Incomplete tasks whose due date has passed, earliest due first by default.",
)
def list_overdue(
    category: Optional[str] = Query(None, description="Category id"),
    priority: Optional[str] = Query(None, description="Priority"),
    sort: Optional[str] = Query("due_date", description="due_date, priority or text"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    limit: int = Query(50, ge=0, le=1000),
    offset: int = Query(0, ge=0),
    store: TaskStore = Depends(get_task_store),
) -> PaginationEnvelope:
    field, descending = _normalize_sort(sort, order, "due_date")
    visible = filter_tasks(overdue_tasks(store.list()), "all", "", category or "", priority or "")
    return _page(sort_tasks(visible, field, descending), limit, offset)


@router.get(
    "/archived",
    response_model=PaginationEnvelope,
    summary="List Archived Tasks",
    description="Archived tasks, most recently archived first by default.",
)
def list_archived(
    q: Optional[str] = Query(None, description="Search text or id"),
    category: Optional[str] = Query(None, description="Category id"),
    archived_on: Optional[date] = Query(None, description="Calendar day the task was archived"),
    sort: Optional[str] = Query("-deleted_at", description="deleted_at, text or category"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    limit: int = Query(10, ge=0, le=1000),
    offset: int = Query(0, ge=0),
    store: TaskStore = Depends(get_task_store),
) -> PaginationEnvelope:
    field, descending = _normalize_sort(sort, order, "-deleted_at")
    visible = filter_archived(store.archived(), q or "", category or "", archived_on)
    return _page(sort_tasks(visible, field, descending), limit, offset)


# PUBLIC_INTERFACE
@router.post(
    "/reorder",
    response_model=ReorderResult,
    summary="Reorder Task",
    description=(
        "Place active_id immediately before over_id. Unknown ids, dropping a "
        "task on itself, or repeating a drop change nothing. Use "
        "POST /api/v1/tasks/{task_id}/move to reach the last position."
    ),
)
def reorder_tasks(payload: ReorderRequest, store: TaskStore = Depends(get_task_store)) -> ReorderResult:
    return ReorderResult(changed=store.reorder(payload.active_id, payload.over_id))


@router.post("/bulk/complete", response_model=BulkResult, summary="Complete Tasks")
def bulk_complete(payload: BulkIds, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_complete(payload.ids))


@router.post("/bulk/uncomplete", response_model=BulkResult, summary="Reopen Tasks")
def bulk_uncomplete(payload: BulkIds, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_uncomplete(payload.ids))


@router.post("/bulk/archive", response_model=BulkResult, summary="Archive Tasks")
def bulk_archive(payload: BulkIds, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_archive(payload.ids))


@router.post("/bulk/restore", response_model=BulkResult, summary="Restore Tasks")
def bulk_restore(payload: BulkIds, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_restore(payload.ids))


@router.post(
    "/bulk/delete",
    response_model=BulkResult,
    summary="Delete Tasks Permanently",
    description="Irreversibly remove the given tasks.",
)
def bulk_delete(payload: BulkIds, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_permanent_delete(payload.ids))


@router.post("/bulk/category", response_model=BulkResult, summary="Change Category")
def bulk_category(payload: BulkCategoryChange, store: TaskStore = Depends(get_task_store)) -> BulkResult:
    return BulkResult(affected=store.bulk_category_change(payload.ids, payload.category))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task (archived or not) by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    """
    Retrieve a single task by its ID.
    """
    task = store.get(task_id)
    if not task:
        raise _not_found()
    return TaskOut(**task)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task Details",
    description="Partially update status, category, priority and due date.",
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
    },
)
def patch_task(task_id: str, payload: TaskDetailsUpdate, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    updated = store.update_details(task_id, **payload.provided())
    if not updated:
        raise _not_found()
    return TaskOut(**updated)  # type: ignore[arg-type]


@router.put(
    "/{task_id}/text",
    response_model=TaskOut,
    summary="Edit Task Text",
    responses={404: {"description": "Task not found"}},
)
def edit_task(task_id: str, payload: TaskTextUpdate, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    updated = store.edit(task_id, payload.text)
    if not updated:
        raise _not_found()
    return TaskOut(**updated)  # type: ignore[arg-type]


@router.post("/{task_id}/toggle", response_model=TaskOut, summary="Toggle Completion")
def toggle_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    updated = store.toggle(task_id)
    if not updated:
        raise _not_found()
    return TaskOut(**updated)  # type: ignore[arg-type]


@router.post("/{task_id}/move", response_model=ReorderResult, summary="Move Task To Position")
def move_task(task_id: str, payload: MoveRequest, store: TaskStore = Depends(get_task_store)) -> ReorderResult:
    if store.get(task_id) is None:
        raise _not_found()
    return ReorderResult(changed=store.move(task_id, payload.index))


@router.post("/{task_id}/archive", response_model=TaskOut, summary="Archive Task")
def archive_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    archived = store.archive(task_id)
    if not archived:
        raise _not_found()
    return TaskOut(**archived)  # type: ignore[arg-type]


@router.post("/{task_id}/restore", response_model=TaskOut, summary="Restore Task")
def restore_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> TaskOut:
    restored = store.restore(task_id)
    if not restored:
        raise _not_found()
    return TaskOut(**restored)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task Permanently",
    description="Irreversibly remove a task. Use the archive endpoint for a restorable delete.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, store: TaskStore = Depends(get_task_store)) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    if not store.permanent_delete(task_id):
        raise _not_found()
    return None
