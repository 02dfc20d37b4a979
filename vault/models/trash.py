"""
models/trash.py
---------------
Soft-delete records.

Moving an entity to the trash stores a full JSON snapshot of its row and
deletes the live row. Restoring recreates the row from the snapshot under
its original id; purging drops the trash record for good.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vault.db.base import Base, TimestampMixin, utcnow


class TrashItemType(str, PyEnum):
    organization = "organization"
    collection = "collection"
    folder = "folder"
    credential = "credential"


class TrashItem(Base, TimestampMixin):
    __tablename__ = "trash"
    __table_args__ = (
        Index("ix_trash_company_restored_deleted", "company_id", "is_restored", "deleted_at"),
        Index("ix_trash_item", "item_id", "item_type"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    deleted_by: Mapped[str] = mapped_column(String(36), nullable=False)
    deleted_from: Mapped[str] = mapped_column(String(64), nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    is_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    restored_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    restored_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<TrashItem id={self.id} type={self.item_type} item_id={self.item_id}>"
