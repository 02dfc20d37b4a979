"""
schemas/hierarchy.py
--------------------
Pydantic models for the Organization → Collection → Folder hierarchy.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class _Named(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


# ── Organization ──────────────────────────────────────────────────────────────

class OrganizationCreate(_Named):
    email: EmailStr


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class OrganizationRead(BaseModel):
    id: str
    name: str
    email: str
    company_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Collection ────────────────────────────────────────────────────────────────

class CollectionCreate(_Named):
    description: str = Field(default="", max_length=2000)
    organization_id: Optional[str] = None


class CollectionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    organization_id: Optional[str] = None


class CollectionRead(BaseModel):
    id: str
    name: str
    description: str
    company_id: str
    organization_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Folder ────────────────────────────────────────────────────────────────────

class FolderCreate(_Named):
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    parent_folder_id: Optional[str] = None


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    parent_folder_id: Optional[str] = None


class FolderRead(BaseModel):
    id: str
    name: str
    company_id: str
    organization_id: Optional[str]
    collection_id: Optional[str]
    parent_folder_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
