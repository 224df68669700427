from __future__ import annotations

import re
from typing import Optional

from .exceptions import InvalidInputError
from .models import MAX_CATEGORY_LABEL_LENGTH, MAX_TASK_TEXT_LENGTH, TASK_PRIORITIES, TASK_STATUSES

_UNSAFE_PATTERNS = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
)
_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


# PUBLIC_INTERFACE
def validate_task_text(text: Optional[str], max_length: int = MAX_TASK_TEXT_LENGTH) -> str:
    """
    Validate task text and return it trimmed.

    Raises:
        InvalidInputError if the text is empty, longer than max_length, or
        contains script-like markup.
    """
    if text is None or not text.strip():
        raise InvalidInputError("Task text cannot be empty")
    if len(text) > max_length:
        raise InvalidInputError(f"Task text cannot exceed {max_length} characters")
    if any(p.search(text) for p in _UNSAFE_PATTERNS):
        raise InvalidInputError("Invalid characters in task text")
    return text.strip()


def validate_category_label(label: Optional[str]) -> str:
    if label is None or not label.strip():
        raise InvalidInputError("Category name cannot be empty")
    s = label.strip()
    if len(s) > MAX_CATEGORY_LABEL_LENGTH:
        raise InvalidInputError(f"Category name cannot exceed {MAX_CATEGORY_LABEL_LENGTH} characters")
    return s


def validate_color(color: Optional[str]) -> str:
    if color is None or not _COLOR_RE.match(color.strip()):
        raise InvalidInputError("Color must be a hex value like '#3b82f6'")
    return color.strip().lower()


def validate_status(status: Optional[str]) -> Optional[str]:
    if status is not None and status not in TASK_STATUSES:
        raise InvalidInputError(f"status must be one of {', '.join(TASK_STATUSES)}")
    return status


def validate_priority(priority: Optional[str]) -> Optional[str]:
    if priority is not None and priority not in TASK_PRIORITIES:
        raise InvalidInputError(f"priority must be one of {', '.join(TASK_PRIORITIES)}")
    return priority
