"""
services/credential_service.py
------------------------------
Business logic for stored credentials ("Passwords").

Every read is resolver-scoped: a missing credential and one the caller may
not see are the same 404. Writes encrypt username, secret and notes before
they reach the session.

Placement
  folder_id, collection_id and organization_id must name rows in the
  caller's company. When a folder is given its collection and organization
  fill in any blanks (and must agree with explicit ones); likewise a
  collection fills in its organization. A company_user may only place a
  credential where they could then see it.
"""

from typing import Any, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.encryption import encrypt
from vault.core.exceptions import Forbidden, InvalidInput
from vault.core.logging import get_logger
from vault.core.password_generator import PasswordOptions, generate_password
from vault.models.collection import Collection
from vault.models.credential import Credential
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.trash import TrashItemType
from vault.models.user import UserRole
from vault.schemas.credential import (
    BulkMoveRequest,
    CredentialCreate,
    CredentialUpdate,
    PasswordGenerateRequest,
)
from vault.schemas.extension import QuickAddRequest
from vault.services.credential_locator import (
    LocatedCredential,
    decrypt_credential,
    escape_like,
    stored_spellings,
)
from vault.services.domain import parse_hostname
from vault.services.hierarchy_service import get_in_company
from vault.services.permission_resolver import Caller, PermissionResolver
from vault.services.trash_service import TrashService

logger = get_logger(__name__)

_PLACEMENT = ("organization_id", "collection_id", "folder_id")
_PLACEMENT_KEYS = frozenset(_PLACEMENT)


async def resolve_placement(
    db: AsyncSession,
    caller: Caller,
    organization_id: Optional[str],
    collection_id: Optional[str],
    folder_id: Optional[str],
) -> dict[str, Optional[str]]:
    """
    Fill in and cross-check a placement, then apply the role's placement rule.

    Raises:
        InvalidInput: unknown or inconsistent ids.
        Forbidden: a company_user placing outside what they can see.
    """
    if folder_id:
        folder = await get_in_company(db, Folder, folder_id, caller.company_id)
        if collection_id and folder.collection_id and collection_id != folder.collection_id:
            raise InvalidInput("Folder belongs to a different collection")
        collection_id = collection_id or folder.collection_id
        organization_id = organization_id or folder.organization_id
    if collection_id:
        collection = await get_in_company(db, Collection, collection_id, caller.company_id)
        if (
            organization_id
            and collection.organization_id
            and organization_id != collection.organization_id
        ):
            raise InvalidInput("Collection belongs to a different organization")
        organization_id = organization_id or collection.organization_id
    if organization_id:
        await get_in_company(db, Organization, organization_id, caller.company_id)

    if not await PermissionResolver.can_place(db, caller, folder_id, collection_id):
        logger.warning("Credential placement refused", user_id=caller.id)
        raise Forbidden("You do not have access to this folder or collection")
    return {
        "organization_id": organization_id,
        "collection_id": collection_id,
        "folder_id": folder_id,
    }


def merged_placement(credential: Credential, changes: dict[str, Any]) -> list[Optional[str]]:
    """
    Placement for an update, in _PLACEMENT order.

    Levels above the lowest one sent are re-derived from it unless they are
    sent too; levels below it are kept only if the level they hang off did
    not change.
    """
    current = {key: getattr(credential, key) for key in _PLACEMENT}
    merged = dict(current)
    if "folder_id" in changes:
        merged.update(collection_id=None, organization_id=None)
    elif "collection_id" in changes:
        merged["organization_id"] = None
        if changes["collection_id"] != current["collection_id"]:
            merged["folder_id"] = None
    elif changes.get("organization_id") != current["organization_id"]:
        merged.update(collection_id=None, folder_id=None)
    merged.update({key: changes[key] for key in _PLACEMENT if key in changes})
    return [merged[key] for key in _PLACEMENT]


def _require_company(caller: Caller) -> None:
    if caller.company_id is None:
        raise Forbidden("Credentials belong to a company; this account has none")


class CredentialService:

    @staticmethod
    async def list_credentials(
        db: AsyncSession,
        caller: Caller,
        q: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[int, list[LocatedCredential]]:
        """
        Visible credentials, most recently updated first. Paging happens
        after the strict re-check so totals never count hidden rows.
        """
        criteria: list[Any] = []
        if q and q.strip():
            term = q.strip()
            urls_text = cast(Credential.website_urls, String)
            criteria.append(
                or_(
                    Credential.item_name.ilike(f"%{escape_like(term)}%", escape="\\"),
                    *(
                        urls_text.ilike(f"%{escape_like(spelling)}%", escape="\\")
                        for spelling in stored_spellings(term)
                    ),
                )
            )
        rows = await PermissionResolver.resolve(db, caller, *criteria)
        page = rows[skip:skip + limit]
        return len(rows), [decrypt_credential(c) for c in page]

    @staticmethod
    async def get_credential(db: AsyncSession, caller: Caller, credential_id: str) -> LocatedCredential:
        credential = await PermissionResolver.get_visible(db, caller, credential_id)
        return decrypt_credential(credential)

    @staticmethod
    async def _build(db: AsyncSession, caller: Caller, data: CredentialCreate) -> Credential:
        placement = await resolve_placement(
            db, caller, data.organization_id, data.collection_id, data.folder_id
        )
        return Credential(
            item_name=data.item_name.strip(),
            username=encrypt(data.username),
            secret=encrypt(data.secret),
            notes=encrypt(data.notes),
            website_urls=list(data.website_urls),
            company_id=caller.company_id,
            created_by=caller.id,
            **placement,
        )

    @staticmethod
    async def create_credential(
        db: AsyncSession, caller: Caller, data: CredentialCreate
    ) -> LocatedCredential:
        _require_company(caller)
        credential = await CredentialService._build(db, caller, data)
        db.add(credential)
        try:
            await db.flush()
            await db.refresh(credential)
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Could not save credential '{data.item_name}'")
        logger.info(
            "Credential created",
            credential_id=credential.id,
            company_id=credential.company_id,
            user_id=caller.id,
        )
        return decrypt_credential(credential)

    @staticmethod
    async def update_credential(
        db: AsyncSession, caller: Caller, credential_id: str, data: CredentialUpdate
    ) -> LocatedCredential:
        credential = await PermissionResolver.get_visible(db, caller, credential_id)
        changes = data.model_dump(exclude_unset=True)

        if _PLACEMENT_KEYS & changes.keys():
            placement = await resolve_placement(
                db, caller, *merged_placement(credential, changes)
            )
            for key, value in placement.items():
                setattr(credential, key, value)

        if changes.get("item_name") is not None:
            credential.item_name = changes["item_name"].strip()
        for key in ("username", "secret", "notes"):
            if changes.get(key) is not None:
                setattr(credential, key, encrypt(changes[key]))
        if changes.get("website_urls") is not None:
            credential.website_urls = list(changes["website_urls"])

        await db.flush()
        await db.refresh(credential)
        logger.info("Credential updated", credential_id=credential.id, user_id=caller.id)
        return decrypt_credential(credential)

    @staticmethod
    async def bulk_create(
        db: AsyncSession, caller: Caller, items: list[CredentialCreate]
    ) -> list[LocatedCredential]:
        """
        All or nothing: every placement is checked before any row is added.

        Raises:
            InvalidInput / Forbidden: from any one item's placement.
        """
        _require_company(caller)
        credentials = [await CredentialService._build(db, caller, data) for data in items]
        db.add_all(credentials)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Could not save {len(credentials)} credentials")
        for credential in credentials:
            await db.refresh(credential)
        logger.info(
            "Credentials created in bulk",
            count=len(credentials),
            company_id=caller.company_id,
            user_id=caller.id,
        )
        return [decrypt_credential(c) for c in credentials]

    @staticmethod
    async def bulk_move(
        db: AsyncSession, caller: Caller, data: BulkMoveRequest
    ) -> list[LocatedCredential]:
        """
        Move visible credentials to one destination. Nothing moves unless
        every id is visible and the destination is a valid placement.

        Raises:
            NotFound: any id missing or invisible to the caller.
        """
        credentials = [
            await PermissionResolver.get_visible(db, caller, credential_id)
            for credential_id in dict.fromkeys(data.credential_ids)
        ]
        placement = await resolve_placement(
            db, caller, data.organization_id, data.collection_id, data.folder_id
        )
        for credential in credentials:
            for key, value in placement.items():
                setattr(credential, key, value)
        await db.flush()
        for credential in credentials:
            await db.refresh(credential)
        logger.info(
            "Credentials moved",
            count=len(credentials),
            user_id=caller.id,
            folder_id=placement["folder_id"],
            collection_id=placement["collection_id"],
        )
        return [decrypt_credential(c) for c in credentials]

    @staticmethod
    async def delete_credential(
        db: AsyncSession, caller: Caller, credential_id: str, deleted_from: str = "passwords"
    ) -> None:
        credential = await PermissionResolver.get_visible(db, caller, credential_id)
        await TrashService.move_to_trash(
            db, caller, credential, TrashItemType.credential, deleted_from
        )

    @staticmethod
    async def quick_add(
        db: AsyncSession, caller: Caller, data: QuickAddRequest
    ) -> LocatedCredential:
        """Store the login typed into a browser tab, named after its host."""
        if caller.role is UserRole.company_user and not (data.folder_id or data.collection_id):
            raise Forbidden("Choose a folder or collection you have access to")
        host = parse_hostname(data.website_url.strip())
        return await CredentialService.create_credential(
            db,
            caller,
            CredentialCreate(
                item_name=(data.item_name or "").strip() or host,
                username=data.username,
                secret=data.secret,
                notes=data.notes,
                website_urls=[data.website_url],
                organization_id=data.organization_id,
                collection_id=data.collection_id,
                folder_id=data.folder_id,
            ),
        )

    @staticmethod
    def generate(options: PasswordGenerateRequest) -> str:
        """
        Raises:
            InvalidInput: the minimums do not fit in the requested length.
        """
        try:
            return generate_password(PasswordOptions(**options.model_dump()))
        except ValueError as exc:
            raise InvalidInput(str(exc))

