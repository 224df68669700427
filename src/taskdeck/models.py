from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, TypedDict

TaskStatus = Literal["pending", "in-progress", "completed"]
TaskPriority = Literal["low", "medium", "high"]
TaskFilter = Literal["all", "active", "completed"]

TASK_STATUSES = ("pending", "in-progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
TASK_FILTERS = ("all", "active", "completed")

UNCATEGORIZED_ID = "uncategorized"
DEFAULT_CATEGORY_COLOR = "#6b7280"
MAX_TASK_TEXT_LENGTH = 200
MAX_CATEGORY_LABEL_LENGTH = 50

# Fixed keys used by key-value backends
TASKS_KEY = "todo-tasks"
CATEGORIES_KEY = "todo-categories"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A single to-do item as held by the task store and persistence backends.

    Fields:
    - id: Unique, stable string identifier
    - text: Task text (1..200 chars, trimmed on input)
    - completed: Boolean completion flag
    - status: pending / in-progress / completed, kept consistent with completed
    - category: Category id, None meaning "uncategorized"
    - priority: Optional low / medium / high
    - due_date: Optional due datetime
    - created_at: Creation timestamp, never changed after creation
    - order: Relative sort key, need not be contiguous
    - deleted_at: When the task was archived, None while active
    - is_archived: Soft-delete marker
    """

    id: str
    text: str
    completed: bool
    status: str
    category: Optional[str]
    priority: Optional[str]
    due_date: Optional[datetime]
    created_at: datetime
    order: float
    deleted_at: Optional[datetime]
    is_archived: bool


# PUBLIC_INTERFACE
class CategoryEntity(TypedDict):
    """A user-defined label-and-color grouping applied to tasks."""

    id: str
    label: str
    color: str


class TaskTemplate(TypedDict):
    id: str
    name: str
    text: str
    category: Optional[str]
    priority: Optional[str]


def uncategorized() -> CategoryEntity:
    return {"id": UNCATEGORIZED_ID, "label": "Uncategorized", "color": DEFAULT_CATEGORY_COLOR}


def default_categories() -> List[CategoryEntity]:
    """Categories seeded into an empty store."""
    return [
        uncategorized(),
        {"id": "work", "label": "Work", "color": "#3b82f6"},
        {"id": "personal", "label": "Personal", "color": "#10b981"},
        {"id": "shopping", "label": "Shopping", "color": "#6366f1"},
        {"id": "health", "label": "Health", "color": "#ef4444"},
        {"id": "learning", "label": "Learning", "color": "#eab308"},
    ]


TASK_TEMPLATES: List[TaskTemplate] = [
    {"id": "meeting", "name": "Meeting", "text": "Team meeting at 2 PM", "category": "work", "priority": "medium"},
    {"id": "shopping", "name": "Shopping", "text": "Grocery shopping", "category": "shopping", "priority": "low"},
    {"id": "exercise", "name": "Exercise", "text": "Go to the gym", "category": "health", "priority": "high"},
    {"id": "reading", "name": "Reading", "text": "Read for 30 minutes", "category": "learning", "priority": "medium"},
    {"id": "project", "name": "Project", "text": "Work on project milestone", "category": "work", "priority": "high"},
    {"id": "call", "name": "Call", "text": "Call back client", "category": "work", "priority": "medium"},
]


def get_template(template_id: str) -> Optional[TaskTemplate]:
    for template in TASK_TEMPLATES:
        if template["id"] == template_id:
            return template
    return None


def task_sort_key(task: TaskEntity):
    """Canonical ordering: order, then creation time, then id."""
    return (task["order"], task["created_at"], task["id"])


def to_local_naive(value: datetime) -> datetime:
    """Stored timestamps are naive local time; convert aware values to match."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """ISO8601 string to a naive local datetime; a trailing 'Z' means UTC."""
    s = value.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    return to_local_naive(datetime.fromisoformat(s))
