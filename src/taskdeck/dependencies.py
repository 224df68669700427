from __future__ import annotations

from typing import Optional

from fastapi import Depends

from .auth import get_current_user
from .registry import StoreRegistry, get_registry
from .stores import CategoryStore, TaskStore


def get_store_registry() -> StoreRegistry:
    """
    Dependency wrapper for the registry so tests can override it.
    """
    return get_registry()


def get_task_store(
    user_id: Optional[str] = Depends(get_current_user),
    registry: StoreRegistry = Depends(get_store_registry),
) -> TaskStore:
    return registry.task_store(user_id)


def get_category_store(
    user_id: Optional[str] = Depends(get_current_user),
    registry: StoreRegistry = Depends(get_store_registry),
) -> CategoryStore:
    return registry.category_store(user_id)
