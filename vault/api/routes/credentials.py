"""
api/routes/credentials.py
-------------------------
Stored credential ("Password") endpoints.

GET    /credentials            — Visible credentials, newest first (paginated).
POST   /credentials/generate   — Generate a random password (stateless).
POST   /credentials/bulk-create — Create many credentials, all or nothing.
POST   /credentials/bulk-move  — Move visible credentials to one destination.
GET    /credentials/{id}       — One visible credential, decrypted.
POST   /credentials            — Create (company accounts only).
PUT    /credentials/{id}       — Update a visible credential.
DELETE /credentials/{id}       — Move a visible credential to the trash.

A credential that does not exist and one the caller may not see both
answer 404 "not found or access denied".
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.db.session import get_db
from vault.dependencies import get_company_caller, get_current_caller
from vault.schemas.credential import (
    BulkCreateRequest,
    BulkMoveRequest,
    CredentialCreate,
    CredentialListResponse,
    CredentialRead,
    CredentialSummary,
    CredentialUpdate,
    PasswordGenerateRequest,
    PasswordGenerateResponse,
)
from vault.services.credential_service import CredentialService
from vault.services.permission_resolver import Caller

router = APIRouter(prefix="/credentials", tags=["Credentials"])


@router.get(
    "",
    response_model=CredentialListResponse,
    summary="List credentials visible to the caller (paginated)",
)
async def list_credentials(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
    q: Optional[str] = Query(default=None, max_length=255, description="Name or URL search"),
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Results per page"),
) -> CredentialListResponse:
    total, items = await CredentialService.list_credentials(db, caller, q=q, skip=skip, limit=limit)
    return CredentialListResponse(
        total=total,
        items=[CredentialSummary.from_located(i) for i in items],
    )


@router.post(
    "/generate",
    response_model=PasswordGenerateResponse,
    summary="Generate a random password",
)
async def generate_password(
    body: PasswordGenerateRequest,
    _: Annotated[Caller, Depends(get_current_caller)],
) -> PasswordGenerateResponse:
    password = CredentialService.generate(body)
    return PasswordGenerateResponse(password=password, length=len(password))


@router.post(
    "/bulk-create",
    response_model=CredentialListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store several credentials at once",
)
async def bulk_create_credentials(
    body: BulkCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> CredentialListResponse:
    """All items are checked first; one bad placement rejects the whole batch."""
    try:
        items = await CredentialService.bulk_create(db, caller, body.items)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CredentialListResponse(
        total=len(items),
        items=[CredentialSummary.from_located(i) for i in items],
    )


@router.post(
    "/bulk-move",
    response_model=CredentialListResponse,
    summary="Move several credentials to one folder or collection",
)
async def bulk_move_credentials(
    body: BulkMoveRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> CredentialListResponse:
    items = await CredentialService.bulk_move(db, caller, body)
    return CredentialListResponse(
        total=len(items),
        items=[CredentialSummary.from_located(i) for i in items],
    )


@router.get("/{credential_id}", response_model=CredentialRead, summary="Get a credential")
async def get_credential(
    credential_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> CredentialRead:
    item = await CredentialService.get_credential(db, caller, credential_id)
    return CredentialRead.from_located(item)


@router.post(
    "",
    response_model=CredentialRead,
    status_code=status.HTTP_201_CREATED,
    summary="Store a new credential",
)
async def create_credential(
    body: CredentialCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> CredentialRead:
    """
    Super admins may place a credential anywhere in their company.
    Restricted users must name a folder or collection they can see.
    """
    try:
        item = await CredentialService.create_credential(db, caller, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return CredentialRead.from_located(item)


@router.put("/{credential_id}", response_model=CredentialRead, summary="Update a credential")
async def update_credential(
    credential_id: str,
    body: CredentialUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> CredentialRead:
    item = await CredentialService.update_credential(db, caller, credential_id, body)
    return CredentialRead.from_located(item)


@router.delete(
    "/{credential_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Move a credential to the trash",
)
async def delete_credential(
    credential_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> None:
    await CredentialService.delete_credential(db, caller, credential_id)
