"""
api/routes/master_admin.py
--------------------------
Platform operator endpoints.

GET    /master-admin/dashboard               — Company and user totals.
GET    /master-admin/companies               — All companies (paginated).
PATCH  /master-admin/companies/{company_id}  — Activate / deactivate.
DELETE /master-admin/companies/{company_id}  — Delete with everything it owns.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_master_admin
from vault.schemas.company import CompanyRead, CompanyStatusUpdate, MasterDashboard
from vault.services.company_service import CompanyService
from vault.services.permission_resolver import Caller

router = APIRouter(prefix="/master-admin", tags=["Master Admin"])


@router.get("/dashboard", response_model=MasterDashboard, summary="Platform totals")
async def dashboard(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[Caller, Depends(get_master_admin)],
) -> MasterDashboard:
    return await CompanyService.master_dashboard(db)


@router.get("/companies", response_model=list[CompanyRead], summary="List companies")
async def list_companies(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[Caller, Depends(get_master_admin)],
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> list[CompanyRead]:
    companies = await CompanyService.list_companies(db, skip=skip, limit=limit)
    return [CompanyRead.model_validate(c) for c in companies]


@router.patch(
    "/companies/{company_id}",
    response_model=CompanyRead,
    summary="Activate or deactivate a company",
)
async def set_company_status(
    company_id: str,
    body: CompanyStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[Caller, Depends(get_master_admin)],
) -> CompanyRead:
    """Users of an inactive company are refused (403) on their next request."""
    company = await CompanyService.set_active(db, company_id, body.is_active)
    return CompanyRead.model_validate(company)


@router.delete(
    "/companies/{company_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a company and all of its data",
)
async def delete_company(
    company_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[Caller, Depends(get_master_admin)],
) -> None:
    await CompanyService.delete_company(db, company_id)
