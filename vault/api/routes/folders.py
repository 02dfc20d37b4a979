"""
api/routes/folders.py
---------------------
Folder endpoints, the most specific level of the hierarchy.

GET    /folders          — Visible folders, filterable by organization / collection.
GET    /folders/{id}     — One visible folder.
POST   /folders          — Super admin: create.
PUT    /folders/{id}     — Super admin: update.
DELETE /folders/{id}     — Super admin: move to trash.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_current_caller, get_current_super_admin
from vault.models.folder import Folder
from vault.schemas.hierarchy import FolderCreate, FolderRead, FolderUpdate
from vault.services.hierarchy_service import FolderService
from vault.services.permission_resolver import Caller

router = APIRouter(prefix="/folders", tags=["Folders"])


@router.get("", response_model=list[FolderRead], summary="List visible folders")
async def list_folders(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
    organization_id: Optional[str] = Query(default=None),
    collection_id: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=255, description="Name search"),
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> list[FolderRead]:
    filters = []
    if organization_id:
        filters.append(Folder.organization_id == organization_id)
    if collection_id:
        filters.append(Folder.collection_id == collection_id)
    _, rows = await FolderService.list_items(db, caller, *filters, q=q, skip=skip, limit=limit)
    return [FolderRead.model_validate(r) for r in rows]


@router.get("/{folder_id}", response_model=FolderRead, summary="Get a folder")
async def get_folder(
    folder_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> FolderRead:
    row = await FolderService.get_item(db, caller, folder_id)
    return FolderRead.model_validate(row)


@router.post(
    "",
    response_model=FolderRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a folder",
)
async def create_folder(
    body: FolderCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> FolderRead:
    try:
        row = await FolderService.create(db, admin, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return FolderRead.model_validate(row)


@router.put("/{folder_id}", response_model=FolderRead, summary="Update a folder")
async def update_folder(
    folder_id: str,
    body: FolderUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> FolderRead:
    try:
        row = await FolderService.update(db, admin, folder_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return FolderRead.model_validate(row)


@router.delete(
    "/{folder_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Move a folder to the trash",
)
async def delete_folder(
    folder_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> None:
    await FolderService.delete_item(db, admin, folder_id)
