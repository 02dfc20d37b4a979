"""
services/hierarchy_service.py
-----------------------------
CRUD for the Organization → Collection → Folder hierarchy.

Reads go through PermissionResolver.hierarchy_criteria, so a company_user
lists exactly the rows whose chain is valid for their grants. Writes are
super-admin only (enforced at the route) and every reference supplied on a
write must name a live row in the caller's company.

Delete is a soft delete into the trash. Children keep their plain id
references, which dangle until the parent is restored; the resolver treats
a dangling link as missing.
"""

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import InvalidInput, NotFound
from vault.core.logging import get_logger
from vault.models.collection import Collection
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.trash import TrashItemType
from vault.schemas.hierarchy import (
    CollectionCreate,
    CollectionUpdate,
    FolderCreate,
    FolderUpdate,
    OrganizationCreate,
    OrganizationUpdate,
)
from vault.services.credential_locator import escape_like
from vault.services.permission_resolver import Caller, PermissionResolver
from vault.services.trash_service import TrashService

logger = get_logger(__name__)


async def get_in_company(db: AsyncSession, model: Any, item_id: str, company_id: Optional[str]) -> Any:
    """
    Raises:
        InvalidInput: no such row in this company.
    """
    result = await db.execute(
        select(model).where(model.id == item_id, model.company_id == company_id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise InvalidInput(f"{model.__name__} '{item_id}' does not exist in this company")
    return row


class _HierarchyService:
    model: Any
    item_type: TrashItemType
    section: str

    @classmethod
    async def list_items(
        cls,
        db: AsyncSession,
        caller: Caller,
        *filters: Any,
        q: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[int, list[Any]]:
        model = cls.model
        scope = await PermissionResolver.hierarchy_criteria(db, caller, model)
        if scope is None:
            return 0, []
        criteria = [scope, *filters]
        if q:
            criteria.append(model.name.ilike(f"%{escape_like(q.strip())}%", escape="\\"))
        total = await db.scalar(select(func.count()).select_from(model).where(*criteria))
        result = await db.execute(
            select(model)
            .where(*criteria)
            .order_by(model.created_at.desc(), model.id)
            .offset(skip)
            .limit(limit)
        )
        return total or 0, list(result.scalars().all())

    @classmethod
    async def get_item(cls, db: AsyncSession, caller: Caller, item_id: str) -> Any:
        model = cls.model
        scope = await PermissionResolver.hierarchy_criteria(db, caller, model)
        row = None
        if scope is not None:
            result = await db.execute(select(model).where(scope, model.id == item_id))
            row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(f"{model.__name__} not found or access denied")
        return row

    @classmethod
    async def _save(cls, db: AsyncSession, row: Any, event: str) -> Any:
        try:
            await db.flush()
            await db.refresh(row)
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Could not save {cls.model.__name__} '{row.name}'")
        logger.info(event, item_id=row.id, company_id=row.company_id)
        return row

    @classmethod
    async def delete_item(cls, db: AsyncSession, caller: Caller, item_id: str) -> None:
        row = await cls.get_item(db, caller, item_id)
        await TrashService.move_to_trash(db, caller, row, cls.item_type, cls.section)


class OrganizationService(_HierarchyService):
    model = Organization
    item_type = TrashItemType.organization
    section = "organizations"

    @classmethod
    async def create(cls, db: AsyncSession, caller: Caller, data: OrganizationCreate) -> Organization:
        org = Organization(
            name=data.name,
            email=data.email.lower(),
            company_id=caller.company_id,
            created_by=caller.id,
        )
        db.add(org)
        return await cls._save(db, org, "Organization created")

    @classmethod
    async def update(
        cls, db: AsyncSession, caller: Caller, item_id: str, data: OrganizationUpdate
    ) -> Organization:
        org = await cls.get_item(db, caller, item_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes:
            changes["email"] = changes["email"].lower()
        for key, value in changes.items():
            setattr(org, key, value)
        return await cls._save(db, org, "Organization updated")


class CollectionService(_HierarchyService):
    model = Collection
    item_type = TrashItemType.collection
    section = "collections"

    @classmethod
    async def create(cls, db: AsyncSession, caller: Caller, data: CollectionCreate) -> Collection:
        if data.organization_id:
            await get_in_company(db, Organization, data.organization_id, caller.company_id)
        collection = Collection(
            name=data.name,
            description=data.description,
            organization_id=data.organization_id,
            company_id=caller.company_id,
            created_by=caller.id,
        )
        db.add(collection)
        return await cls._save(db, collection, "Collection created")

    @classmethod
    async def update(
        cls, db: AsyncSession, caller: Caller, item_id: str, data: CollectionUpdate
    ) -> Collection:
        collection = await cls.get_item(db, caller, item_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("organization_id"):
            await get_in_company(db, Organization, changes["organization_id"], caller.company_id)
        for key, value in changes.items():
            if value is None and key != "organization_id":
                continue
            setattr(collection, key, value)
        return await cls._save(db, collection, "Collection updated")


class FolderService(_HierarchyService):
    model = Folder
    item_type = TrashItemType.folder
    section = "folders"

    @staticmethod
    async def _placement(
        db: AsyncSession,
        caller: Caller,
        organization_id: Optional[str],
        collection_id: Optional[str],
        parent_folder_id: Optional[str],
    ) -> tuple[Optional[str], Optional[str]]:
        """
        Validate references; a folder inside a collection takes the
        collection's organization when none is given.
        """
        if collection_id:
            collection = await get_in_company(db, Collection, collection_id, caller.company_id)
            if organization_id is None:
                organization_id = collection.organization_id
            elif collection.organization_id and collection.organization_id != organization_id:
                raise InvalidInput("Collection belongs to a different organization")
        if organization_id:
            await get_in_company(db, Organization, organization_id, caller.company_id)
        if parent_folder_id:
            await get_in_company(db, Folder, parent_folder_id, caller.company_id)
        return organization_id, collection_id

    @classmethod
    async def create(cls, db: AsyncSession, caller: Caller, data: FolderCreate) -> Folder:
        organization_id, collection_id = await cls._placement(
            db, caller, data.organization_id, data.collection_id, data.parent_folder_id
        )
        folder = Folder(
            name=data.name,
            organization_id=organization_id,
            collection_id=collection_id,
            parent_folder_id=data.parent_folder_id,
            company_id=caller.company_id,
            created_by=caller.id,
        )
        db.add(folder)
        return await cls._save(db, folder, "Folder created")

    @classmethod
    async def update(
        cls, db: AsyncSession, caller: Caller, item_id: str, data: FolderUpdate
    ) -> Folder:
        folder = await cls.get_item(db, caller, item_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("parent_folder_id") == folder.id:
            raise InvalidInput("A folder cannot be its own parent")
        if {"organization_id", "collection_id", "parent_folder_id"} & changes.keys():
            organization_id, collection_id = await cls._placement(
                db,
                caller,
                changes.get("organization_id", folder.organization_id),
                changes.get("collection_id", folder.collection_id),
                changes.get("parent_folder_id", folder.parent_folder_id),
            )
            changes["organization_id"] = organization_id
            changes["collection_id"] = collection_id
        if changes.get("name") is not None:
            folder.name = changes["name"]
        for key in ("organization_id", "collection_id", "parent_folder_id"):
            if key in changes:
                setattr(folder, key, changes[key])
        return await cls._save(db, folder, "Folder updated")
