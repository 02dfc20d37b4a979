"""
services/trash_service.py
-------------------------
Soft delete, restore and purge.

Moving a row to the trash snapshots every column (datetimes as ISO strings,
encrypted fields left encrypted) and deletes the live row. Restoring
rebuilds the row from the snapshot under its original id, so plain id
references from other rows (and users' grants) line up again.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, delete, func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vault.core.exceptions import Conflict, NotFound
from vault.core.logging import get_logger
from vault.models.collection import Collection
from vault.models.credential import Credential
from vault.models.folder import Folder
from vault.models.organization import Organization
from vault.models.trash import TrashItem, TrashItemType
from vault.services.permission_resolver import Caller

logger = get_logger(__name__)

MODELS: dict[TrashItemType, Any] = {
    TrashItemType.organization: Organization,
    TrashItemType.collection: Collection,
    TrashItemType.folder: Folder,
    TrashItemType.credential: Credential,
}


def snapshot(row: Any) -> dict[str, Any]:
    """Column values of an ORM row as JSON-safe data."""
    data: dict[str, Any] = {}
    for attr in inspect(row).mapper.column_attrs:
        value = getattr(row, attr.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, list):
            value = list(value)
        data[attr.key] = value
    return data


def rebuild(model: Any, data: dict[str, Any]) -> Any:
    """Inverse of snapshot(): a new, unsaved row of `model`."""
    values: dict[str, Any] = {}
    for attr in inspect(model).column_attrs:
        if attr.key not in data:
            continue
        value = data[attr.key]
        column_type = attr.columns[0].type
        if value is not None and isinstance(column_type, DateTime):
            value = datetime.fromisoformat(value)
        values[attr.key] = value
    return model(**values)


def _display_name(row: Any) -> str:
    return getattr(row, "name", None) or getattr(row, "item_name", None) or row.id


class TrashService:

    @staticmethod
    async def move_to_trash(
        db: AsyncSession,
        caller: Caller,
        row: Any,
        item_type: TrashItemType,
        deleted_from: str,
    ) -> TrashItem:
        # Server-side defaults and onupdate values may be expired.
        await db.refresh(row)
        item = TrashItem(
            company_id=row.company_id,
            item_id=row.id,
            item_type=item_type.value,
            item_name=_display_name(row),
            original_data=snapshot(row),
            deleted_by=caller.id,
            deleted_from=deleted_from,
        )
        db.add(item)
        await db.delete(row)
        await db.flush()
        await db.refresh(item)
        logger.info(
            "Item moved to trash",
            item_type=item_type.value,
            item_id=item.item_id,
            company_id=item.company_id,
            user_id=caller.id,
        )
        return item

    @staticmethod
    async def list_items(
        db: AsyncSession, caller: Caller, skip: int = 0, limit: int = 50
    ) -> tuple[int, list[TrashItem]]:
        """Items still in the trash for the caller's company, newest first."""
        scope = (TrashItem.company_id == caller.company_id, TrashItem.is_restored.is_(False))
        total = await db.scalar(select(func.count()).select_from(TrashItem).where(*scope))
        result = await db.execute(
            select(TrashItem)
            .where(*scope)
            .order_by(TrashItem.deleted_at.desc(), TrashItem.id)
            .offset(skip)
            .limit(limit)
        )
        return total or 0, list(result.scalars().all())

    @staticmethod
    async def get_item(db: AsyncSession, caller: Caller, trash_id: str) -> TrashItem:
        result = await db.execute(
            select(TrashItem).where(
                TrashItem.id == trash_id, TrashItem.company_id == caller.company_id
            )
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound("Trash item not found")
        return item

    @staticmethod
    async def restore(db: AsyncSession, caller: Caller, trash_id: str) -> Any:
        """
        Recreate the live row from its snapshot.

        Raises:
            NotFound: unknown trash id for this company.
            Conflict: already restored, or a live row with that id exists.
        """
        item = await TrashService.get_item(db, caller, trash_id)
        if item.is_restored:
            raise Conflict("Item has already been restored")
        model = MODELS[TrashItemType(item.item_type)]
        if await db.get(model, item.item_id) is not None:
            raise Conflict(f"A live {item.item_type} with id '{item.item_id}' already exists")

        row = rebuild(model, item.original_data)
        db.add(row)
        item.is_restored = True
        item.restored_at = datetime.now(timezone.utc)
        item.restored_by = caller.id
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Could not restore {item.item_type} '{item.item_name}'")
        await db.refresh(row)
        logger.info(
            "Item restored from trash",
            item_type=item.item_type,
            item_id=item.item_id,
            company_id=item.company_id,
            user_id=caller.id,
        )
        return row

    @staticmethod
    async def purge(db: AsyncSession, caller: Caller, trash_id: str) -> None:
        item = await TrashService.get_item(db, caller, trash_id)
        await db.delete(item)
        await db.flush()
        logger.info("Trash item purged", item_id=item.item_id, company_id=item.company_id)

    @staticmethod
    async def empty(db: AsyncSession, caller: Caller, item_type: Optional[TrashItemType] = None) -> int:
        criteria = [TrashItem.company_id == caller.company_id]
        if item_type is not None:
            criteria.append(TrashItem.item_type == item_type.value)
        result = await db.execute(delete(TrashItem).where(*criteria))
        logger.info("Trash emptied", company_id=caller.company_id, purged=result.rowcount)
        return result.rowcount or 0
