"""
Exception hierarchy for taskdeck.

Stores and engines raise these; the HTTP layer maps them to JSON responses
in main.py. Not-found conditions are never raised from stores.
"""
from __future__ import annotations

from typing import List, Optional


class TaskdeckError(Exception):
    """Base exception for all taskdeck errors."""

    status_code = 400


class InvalidInputError(TaskdeckError):
    """Input failed validation before any state was changed."""

    status_code = 422


class DuplicateCategoryError(TaskdeckError):
    """Category label already exists (case-insensitive)."""

    status_code = 409

    def __init__(self, label: str):
        self.label = label
        super().__init__("Category name already exists")


class ReservedCategoryError(TaskdeckError):
    """Attempted to rename or delete the reserved Uncategorized category."""

    status_code = 403

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Cannot {action} the Uncategorized category")


class CategoryInUseError(TaskdeckError):
    status_code = 409

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__("Cannot delete category that is in use by tasks")


class ReadOnlyError(TaskdeckError):
    """Write attempted without an identified user."""

    status_code = 401

    def __init__(self, message: str = "Sign in to modify tasks"):
        super().__init__(message)


class PersistenceError(TaskdeckError):
    """
    The backing store rejected or failed a write.

    failed_ids lists the records whose writes did not go through; for bulk
    operations the remaining records stay applied.
    """

    status_code = 503

    def __init__(self, message: str, failed_ids: Optional[List[str]] = None):
        self.failed_ids = list(failed_ids or [])
        super().__init__(message)
