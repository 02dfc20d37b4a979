"""
schemas/trash.py
----------------
Pydantic models for soft-deleted items.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from vault.models.trash import TrashItemType


class TrashItemRead(BaseModel):
    id: str
    item_id: str
    item_type: TrashItemType
    item_name: str
    deleted_by: str
    deleted_from: str
    deleted_at: datetime
    is_restored: bool
    restored_at: Optional[datetime]

    model_config = {"from_attributes": True}


class TrashItemDetail(TrashItemRead):
    # Encrypted fields stay encrypted in the snapshot.
    original_data: dict[str, Any]


class TrashListResponse(BaseModel):
    total: int
    items: list[TrashItemRead]


class TrashPurged(BaseModel):
    purged: int
