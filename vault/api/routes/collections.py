"""
api/routes/collections.py
-------------------------
Collection endpoints.

GET    /collections          — Visible collections, optionally within one organization.
GET    /collections/{id}     — One visible collection.
POST   /collections          — Super admin: create.
PUT    /collections/{id}     — Super admin: update.
DELETE /collections/{id}     — Super admin: move to trash.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_current_caller, get_current_super_admin
from vault.models.collection import Collection
from vault.schemas.hierarchy import CollectionCreate, CollectionRead, CollectionUpdate
from vault.services.hierarchy_service import CollectionService
from vault.services.permission_resolver import Caller

router = APIRouter(prefix="/collections", tags=["Collections"])


@router.get("", response_model=list[CollectionRead], summary="List visible collections")
async def list_collections(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
    organization_id: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=255, description="Name search"),
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> list[CollectionRead]:
    filters = []
    if organization_id:
        filters.append(Collection.organization_id == organization_id)
    _, rows = await CollectionService.list_items(db, caller, *filters, q=q, skip=skip, limit=limit)
    return [CollectionRead.model_validate(r) for r in rows]


@router.get("/{collection_id}", response_model=CollectionRead, summary="Get a collection")
async def get_collection(
    collection_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> CollectionRead:
    row = await CollectionService.get_item(db, caller, collection_id)
    return CollectionRead.model_validate(row)


@router.post(
    "",
    response_model=CollectionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a collection",
)
async def create_collection(
    body: CollectionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> CollectionRead:
    try:
        row = await CollectionService.create(db, admin, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CollectionRead.model_validate(row)


@router.put("/{collection_id}", response_model=CollectionRead, summary="Update a collection")
async def update_collection(
    collection_id: str,
    body: CollectionUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> CollectionRead:
    try:
        row = await CollectionService.update(db, admin, collection_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CollectionRead.model_validate(row)


@router.delete(
    "/{collection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Move a collection to the trash",
)
async def delete_collection(
    collection_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> None:
    await CollectionService.delete_item(db, admin, collection_id)
