"""
api/routes/extension.py
-----------------------
Endpoints the browser extension talks to.

GET  /extension/by-domain?host=…      — Every visible credential for a site.
GET  /extension/credentials/{id}      — One visible credential, decrypted.
POST /extension/autofill              — The one credential to fill, as an envelope.
PUT  /extension/selection             — Remember the user's pick for a host.
POST /extension/quick-add             — Save the login typed into the current tab.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import MissingHost
from vault.core.logging import get_logger
from vault.db.session import get_db
from vault.dependencies import get_company_caller, get_current_caller
from vault.schemas.extension import (
    AutofillData,
    AutofillRequest,
    Envelope,
    ExtensionError,
    LocateResponse,
    MatchedCredential,
    QuickAddRequest,
    SelectionRead,
    SelectionUpdate,
)
from vault.services.credential_locator import CredentialLocator
from vault.services.credential_service import CredentialService
from vault.services.permission_resolver import Caller
from vault.services.selection_service import (
    SOURCE_HINT,
    SOURCE_REMEMBERED,
    SelectionCoordinator,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/extension", tags=["Extension"])


@router.get(
    "/by-domain",
    response_model=LocateResponse,
    summary="Credentials matching a site, with the one to fill",
)
async def credentials_by_domain(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
    host: Optional[str] = Query(default=None, description="Hostname or full URL of the tab"),
) -> LocateResponse:
    """
    `has_multiple` tells the extension to offer a choice; `selected` is the
    remembered pick when it is still valid, else the most recent match.
    """
    result = await CredentialLocator.locate(db, caller, host)
    return LocateResponse.from_result(result)


@router.get(
    "/credentials/{credential_id}",
    response_model=MatchedCredential,
    summary="Get one credential for filling",
)
async def extension_credential(
    credential_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> MatchedCredential:
    item = await CredentialService.get_credential(db, caller, credential_id)
    return MatchedCredential.from_located(item)


@router.post(
    "/autofill",
    response_model=Envelope[AutofillData],
    summary="Resolve the credential to autofill for a site",
)
async def autofill(
    body: AutofillRequest,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Envelope[AutofillData]:
    """
    A missing host is a 400; no credentials for the site is a normal 200
    with ok=false. A hint that is among the matches is remembered so the
    next lookup picks it without asking.
    """
    try:
        result = await CredentialLocator.locate(db, caller, body.host, body.credential_id_hint)
    except MissingHost:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return Envelope[AutofillData](ok=False, error=ExtensionError.MISSING_HOST.value)

    if result.selected is None:
        return Envelope[AutofillData](ok=False, error=ExtensionError.NO_CREDENTIALS.value)

    if result.selection_source == SOURCE_HINT:
        await SelectionCoordinator.set_selection(db, caller, result.host, result.selected.id)

    return Envelope[AutofillData](
        ok=True,
        data=AutofillData(
            credential_id=result.selected.id,
            username=result.selected.username,
            secret=result.selected.secret,
            match_count=result.count,
            selected=result.selection_source in (SOURCE_HINT, SOURCE_REMEMBERED),
        ),
    )


@router.put(
    "/selection",
    response_model=SelectionRead,
    summary="Remember which credential to use for a host",
)
async def set_selection(
    body: SelectionUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> SelectionRead:
    """404 when the credential is missing or not visible to the caller."""
    selection = await SelectionCoordinator.set_selection(db, caller, body.host, body.credential_id)
    return SelectionRead.model_validate(selection)


@router.post(
    "/quick-add",
    response_model=MatchedCredential,
    status_code=status.HTTP_201_CREATED,
    summary="Save a login from the current tab",
)
async def quick_add(
    body: QuickAddRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[Caller, Depends(get_company_caller)],
) -> MatchedCredential:
    try:
        item = await CredentialService.quick_add(db, caller, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.info("Credential saved from extension", user_id=caller.id, credential_id=item.id)
    return MatchedCredential.from_located(item)
