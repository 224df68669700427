from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import DEFAULT_CATEGORY_COLOR, parse_timestamp, to_local_naive

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

StatusField = Literal["pending", "in-progress", "completed"]
PriorityField = Literal["low", "medium", "high"]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a naive local datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
      A trailing 'Z' is read as UTC.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime with a UTC offset, convert it to local time and drop the offset.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_local_naive(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        try:
            return parse_timestamp(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


class _DueDateMixin(BaseModel):
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the task. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskCreate(_DueDateMixin):
    """
    Schema for creating a new task. Text length and content are checked by
    the task store so the configured limit applies.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": "Buy groceries",
                "category": "shopping",
                "priority": "low",
                "status": "pending",
                "due_date": "2025-02-01",
            }
        }
    )

    text: str = Field(..., description="Task text")
    category: Optional[str] = Field(default=None, description="Category id; omit for uncategorized")
    priority: Optional[PriorityField] = Field(default=None, description="Task priority")
    status: Optional[StatusField] = Field(default=None, description="Initial status, 'pending' by default")


# PUBLIC_INTERFACE
class TaskTextUpdate(BaseModel):
    """Schema for replacing the text of a task."""

    text: str = Field(..., description="New task text")


# PUBLIC_INTERFACE
class TaskDetailsUpdate(_DueDateMixin):
    """
    Schema for updating task details.
    All fields are optional; only provided fields will be updated, and an
    explicit null clears category, priority or due_date.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "in-progress",
                "category": "work",
                "priority": "high",
                "due_date": "2025-02-02T09:30:00",
            }
        }
    )

    status: Optional[StatusField] = Field(default=None, description="Task status")
    category: Optional[str] = Field(default=None, description="Category id")
    priority: Optional[PriorityField] = Field(default=None, description="Task priority")

    def provided(self) -> Dict[str, object]:
        """Only the fields the client sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "9f1c2a7e5b3d4c6f8a0b1c2d3e4f5a6b",
                "text": "Buy groceries",
                "completed": False,
                "status": "pending",
                "category": "shopping",
                "priority": "low",
                "due_date": "2025-02-01T00:00:00",
                "created_at": "2025-01-25T10:15:30.123456",
                "order": 1737800130123.0,
                "deleted_at": None,
                "is_archived": False,
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    text: str = Field(..., description="Task text")
    completed: bool = Field(..., description="Completion status flag")
    status: StatusField = Field(..., description="Workflow status")
    category: Optional[str] = Field(default=None, description="Category id, null for uncategorized")
    priority: Optional[PriorityField] = Field(default=None, description="Task priority")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    created_at: datetime = Field(..., description="Creation timestamp")
    order: float = Field(..., description="Relative sort key")
    deleted_at: Optional[datetime] = Field(default=None, description="When the task was archived")
    is_archived: bool = Field(default=False, description="Soft-delete marker")


class TaskStats(BaseModel):
    all: int = Field(..., description="Number of non-archived tasks")
    active: int = Field(..., description="Number of tasks not completed")
    completed: int = Field(..., description="Number of completed tasks")


# PUBLIC_INTERFACE
class ReorderRequest(BaseModel):
    """Drag-and-drop move: place active_id immediately before over_id."""

    active_id: str = Field(..., description="Task being dragged")
    over_id: str = Field(..., description="Task it was dropped on")


class MoveRequest(BaseModel):
    index: int = Field(..., ge=0, description="Zero-based target position among non-archived tasks")


class ReorderResult(BaseModel):
    changed: Dict[str, float] = Field(..., description="New order values keyed by task id")


# PUBLIC_INTERFACE
class BulkIds(BaseModel):
    """Ids for a bulk action; unknown ids are ignored."""

    ids: List[str] = Field(..., description="Task ids")


class BulkCategoryChange(BulkIds):
    category: Optional[str] = Field(default=None, description="Category id; null or '' clears the category")


class BulkResult(BaseModel):
    affected: List[str] = Field(..., description="Ids the action was applied to")


# PUBLIC_INTERFACE
class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    model_config = ConfigDict(json_schema_extra={"example": {"label": "Errands", "color": "#f97316"}})

    label: str = Field(..., description="Unique (case-insensitive) category name")
    color: str = Field(default=DEFAULT_CATEGORY_COLOR, description="Hex color")


class CategoryUpdate(BaseModel):
    label: Optional[str] = Field(default=None, description="New name")
    color: Optional[str] = Field(default=None, description="New hex color")


class CategoryOut(BaseModel):
    id: str = Field(..., description="Category id")
    label: str = Field(..., description="Category name")
    color: str = Field(..., description="Hex color")


class NameTaken(BaseModel):
    taken: bool


class TemplateOut(BaseModel):
    id: str
    name: str
    text: str
    category: Optional[str] = None
    priority: Optional[PriorityField] = None


class TemplateApply(_DueDateMixin):
    """Optional overrides when creating a task from a template."""

    category: Optional[str] = Field(default=None, description="Override the template category")


class MigrationResult(BaseModel):
    migrated: int = Field(..., description="Number of tasks copied to the remote collection")


class MigrationStatus(BaseModel):
    pending: bool = Field(..., description="True when local tasks are waiting to be migrated")
