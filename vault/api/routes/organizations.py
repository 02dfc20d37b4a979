"""
api/routes/organizations.py
---------------------------
Organization endpoints, the top of the hierarchy.

GET    /organizations         — Visible organizations (paginated, searchable).
GET    /organizations/{id}    — One visible organization.
POST   /organizations         — Super admin: create.
PUT    /organizations/{id}    — Super admin: update.
DELETE /organizations/{id}    — Super admin: move to trash.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_current_caller, get_current_super_admin
from vault.schemas.hierarchy import OrganizationCreate, OrganizationRead, OrganizationUpdate
from vault.services.hierarchy_service import OrganizationService
from vault.services.permission_resolver import Caller

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.get("", response_model=list[OrganizationRead], summary="List visible organizations")
async def list_organizations(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
    q: Optional[str] = Query(default=None, max_length=255, description="Name search"),
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> list[OrganizationRead]:
    _, rows = await OrganizationService.list_items(db, caller, q=q, skip=skip, limit=limit)
    return [OrganizationRead.model_validate(r) for r in rows]


@router.get("/{organization_id}", response_model=OrganizationRead, summary="Get an organization")
async def get_organization(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> OrganizationRead:
    row = await OrganizationService.get_item(db, caller, organization_id)
    return OrganizationRead.model_validate(row)


@router.post(
    "",
    response_model=OrganizationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an organization",
)
async def create_organization(
    body: OrganizationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> OrganizationRead:
    try:
        row = await OrganizationService.create(db, admin, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return OrganizationRead.model_validate(row)


@router.put("/{organization_id}", response_model=OrganizationRead, summary="Update an organization")
async def update_organization(
    organization_id: str,
    body: OrganizationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> OrganizationRead:
    try:
        row = await OrganizationService.update(db, admin, organization_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return OrganizationRead.model_validate(row)


@router.delete(
    "/{organization_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Move an organization to the trash",
)
async def delete_organization(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> None:
    await OrganizationService.delete_item(db, admin, organization_id)
