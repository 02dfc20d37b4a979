"""
api/routes/company.py
---------------------
Company super admin endpoints. Everything is scoped to the admin's own
company; the company id always comes from the caller, never the request.

GET    /company/dashboard                    — User and credential totals.
GET    /company/users                        — List restricted users.
POST   /company/users                        — Create a restricted user.
GET    /company/users/{user_id}              — One user.
PUT    /company/users/{user_id}              — Rename / (de)activate.
DELETE /company/users/{user_id}              — Remove a user.
PUT    /company/users/{user_id}/permissions  — Replace the user's grants.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_current_super_admin
from vault.schemas.company import CompanyDashboard
from vault.schemas.user import PermissionGrants, UserCreate, UserRead, UserUpdate
from vault.services.company_service import CompanyService
from vault.services.permission_resolver import Caller
from vault.services.user_service import UserService

router = APIRouter(prefix="/company", tags=["Company"])


@router.get("/dashboard", response_model=CompanyDashboard, summary="Company totals")
async def dashboard(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> CompanyDashboard:
    return await CompanyService.company_dashboard(db, admin.company_id)


@router.get("/users", response_model=list[UserRead], summary="List company users")
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
    q: Optional[str] = Query(default=None, max_length=255, description="Name or email search"),
) -> list[UserRead]:
    users = await UserService.list_company_users(db, admin.company_id, q)
    return [UserRead.model_validate(u) for u in users]


@router.post(
    "/users",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a restricted user in the current company",
)
async def create_user(
    body: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> UserRead:
    """
    The company_id is sourced from the admin's account — admins cannot
    create users in other companies. New users start with no grants.
    """
    try:
        user = await UserService.create_company_user(db, body, admin)
        return UserRead.model_validate(user)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.get("/users/{user_id}", response_model=UserRead, summary="Get one company user")
async def get_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> UserRead:
    user = await UserService.get_company_user(db, admin.company_id, user_id)
    return UserRead.model_validate(user)


@router.put("/users/{user_id}", response_model=UserRead, summary="Update a company user")
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> UserRead:
    user = await UserService.update_company_user(db, admin.company_id, user_id, body)
    return UserRead.model_validate(user)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a company user",
)
async def delete_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> None:
    await UserService.delete_company_user(db, admin.company_id, user_id)


@router.put(
    "/users/{user_id}/permissions",
    response_model=UserRead,
    summary="Replace a user's organization/collection/folder grants",
)
async def set_permissions(
    user_id: str,
    body: PermissionGrants,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Caller, Depends(get_current_super_admin)],
) -> UserRead:
    """
    Grants are independent: granting a folder does not grant its collection
    or organization. Takes effect on the user's next request.
    """
    user = await UserService.set_permissions(db, admin.company_id, user_id, body)
    return UserRead.model_validate(user)
