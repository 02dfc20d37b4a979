"""
api/routes/trash.py
-------------------
Trash endpoints (company super admin only, company-scoped).

GET    /trash                 — Items awaiting restore or purge, newest first.
GET    /trash/{id}            — One trash record with its snapshot.
POST   /trash/{id}/restore    — Recreate the item under its original id.
DELETE /trash/{id}            — Purge one record for good.
DELETE /trash                 — Purge everything (optionally one item type).
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_current_super_admin
from vault.models.trash import TrashItemType
from vault.schemas.trash import TrashItemDetail, TrashItemRead, TrashListResponse, TrashPurged
from vault.services.permission_resolver import Caller
from vault.services.trash_service import TrashService

router = APIRouter(prefix="/trash", tags=["Trash"])


@router.get("", response_model=TrashListResponse, summary="List trashed items")
async def list_trash(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> TrashListResponse:
    total, items = await TrashService.list_items(db, admin, skip=skip, limit=limit)
    return TrashListResponse(total=total, items=[TrashItemRead.model_validate(i) for i in items])


@router.get("/{trash_id}", response_model=TrashItemDetail, summary="Get a trashed item")
async def get_trash_item(
    trash_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> TrashItemDetail:
    item = await TrashService.get_item(db, admin, trash_id)
    return TrashItemDetail.model_validate(item)


@router.post("/{trash_id}/restore", response_model=TrashItemRead, summary="Restore a trashed item")
async def restore_trash_item(
    trash_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> TrashItemRead:
    """409 when the item was already restored or its id is live again."""
    try:
        await TrashService.restore(db, admin, trash_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    item = await TrashService.get_item(db, admin, trash_id)
    return TrashItemRead.model_validate(item)


@router.delete(
    "/{trash_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Permanently delete a trashed item",
)
async def purge_trash_item(
    trash_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> None:
    await TrashService.purge(db, admin, trash_id)


@router.delete("", response_model=TrashPurged, summary="Empty the trash")
async def empty_trash(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
    item_type: Optional[TrashItemType] = Query(default=None),
) -> TrashPurged:
    purged = await TrashService.empty(db, admin, item_type)
    return TrashPurged(purged=purged)
