from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import get_current_user
from ..backends import JsonFileKeyValueBackend
from ..dependencies import get_store_registry
from ..exceptions import ReadOnlyError
from ..migration import has_local_data, migrate_local_to_remote
from ..registry import StoreRegistry
from ..schemas import MigrationResult, MigrationStatus

router = APIRouter(
    prefix="/api/v1/migrate",
    tags=["migration"],
)


# PUBLIC_INTERFACE
@router.post(
    "/local-to-remote",
    response_model=MigrationResult,
    summary="Migrate Local Tasks",
    description=(
        "Copy tasks from the local key-value store (LOCAL_STORE_PATH) into the "
        "signed-in user's remote collection, then clear the local copy. "
        "Only available with the remote backend."
    ),
    responses={
        400: {"description": "Remote backend not configured"},
        401: {"description": "No identified user"},
    },
)
def migrate_local(
    user_id: Optional[str] = Depends(get_current_user),
    registry: StoreRegistry = Depends(get_store_registry),
) -> MigrationResult:
    if not registry.is_remote:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Migration requires PERSISTENCE_BACKEND=remote",
        )
    if user_id is None:
        raise ReadOnlyError("Sign in to migrate local tasks")
    local = JsonFileKeyValueBackend(registry.settings.local_store_path)
    migrated = migrate_local_to_remote(local, registry.document_backend(), user_id)
    return MigrationResult(migrated=migrated)


@router.get(
    "/status",
    response_model=MigrationStatus,
    summary="Migration Status",
    description=(
        "Whether the local key-value store still holds tasks that could be "
        "migrated. Always false unless the remote backend is configured."
    ),
)
def migration_status(registry: StoreRegistry = Depends(get_store_registry)) -> MigrationStatus:
    if not registry.is_remote:
        return MigrationStatus(pending=False)
    local = JsonFileKeyValueBackend(registry.settings.local_store_path)
    return MigrationStatus(pending=has_local_data(local))
