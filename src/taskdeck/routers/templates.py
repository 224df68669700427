from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_task_store
from ..models import TASK_TEMPLATES, get_template
from ..schemas import TaskOut, TemplateApply, TemplateOut
from ..stores import TaskStore

router = APIRouter(
    prefix="/api/v1/templates",
    tags=["templates"],
)


@router.get("/", response_model=List[TemplateOut], summary="List Quick Templates")
def list_templates() -> List[TemplateOut]:
    return [TemplateOut(**t) for t in TASK_TEMPLATES]


# PUBLIC_INTERFACE
@router.post(
    "/{template_id}/apply",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task From Template",
    responses={404: {"description": "Template not found"}},
)
def apply_template(
    template_id: str,
    payload: TemplateApply,
    store: TaskStore = Depends(get_task_store),
) -> TaskOut:
    """
    Create a task prefilled from a quick template. The body may override the
    category and set a due date.
    """
    template = get_template(template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    category = payload.category if "category" in payload.model_fields_set else template["category"]
    created = store.add(
        template["text"],
        category=category,
        due_date=payload.due_date,
        priority=template["priority"],
    )
    return TaskOut(**created)  # type: ignore[arg-type]
