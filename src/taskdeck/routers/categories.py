from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_category_store, get_task_store
from ..schemas import CategoryCreate, CategoryOut, CategoryUpdate, NameTaken
from ..stores import CategoryStore, TaskStore

router = APIRouter(
    prefix="/api/v1/categories",
    tags=["categories"],
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[CategoryOut],
    summary="List Categories",
    description="All categories. 'uncategorized' is always present.",
)
def list_categories(store: CategoryStore = Depends(get_category_store)) -> List[CategoryOut]:
    return [CategoryOut(**c) for c in store.list()]


@router.get(
    "/name-taken",
    response_model=NameTaken,
    summary="Check Category Name",
    description="Case-insensitive check whether a name is used by another category.",
)
def name_taken(
    name: str = Query(..., description="Name to check"),
    exclude_id: Optional[str] = Query(None, description="Category to ignore, e.g. the one being renamed"),
    store: CategoryStore = Depends(get_category_store),
) -> NameTaken:
    return NameTaken(taken=store.is_name_taken(name, exclude_id))


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Category",
    responses={
        201: {"description": "Category created"},
        409: {"description": "Category name already exists"},
    },
)
def create_category(payload: CategoryCreate, store: CategoryStore = Depends(get_category_store)) -> CategoryOut:
    return CategoryOut(**store.add(payload.label, payload.color))


# PUBLIC_INTERFACE
@router.patch(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Update Category",
    description="Rename and/or recolor a category. 'uncategorized' can be recolored but not renamed.",
    responses={
        403: {"description": "Reserved category"},
        404: {"description": "Category not found"},
        409: {"description": "Category name already exists"},
    },
)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    store: CategoryStore = Depends(get_category_store),
) -> CategoryOut:
    category = store.get(category_id)
    if category is None:
        raise _not_found()
    if payload.label is not None:
        category = store.rename(category_id, payload.label)
    if payload.color is not None:
        category = store.recolor(category_id, payload.color)
    if category is None:
        raise _not_found()
    return CategoryOut(**category)


# PUBLIC_INTERFACE
@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Category",
    description="Delete a category no task (archived ones included) refers to.",
    responses={
        204: {"description": "Category deleted"},
        403: {"description": "Reserved category"},
        404: {"description": "Category not found"},
        409: {"description": "Category in use"},
    },
)
def delete_category(
    category_id: str,
    store: CategoryStore = Depends(get_category_store),
    tasks: TaskStore = Depends(get_task_store),
) -> None:
    if not store.delete(category_id, tasks.list(include_archived=True)):
        raise _not_found()
    return None


@router.delete(
    "/",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset Categories",
    description="Remove every stored category. 'uncategorized' remains available.",
)
def clear_categories(store: CategoryStore = Depends(get_category_store)) -> None:
    store.clear()
    return None
