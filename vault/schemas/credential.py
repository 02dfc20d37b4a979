"""
schemas/credential.py
---------------------
Pydantic models for stored credentials and the password generator.

Encrypted columns never leave the service layer as ciphertext: read models
are built from a decrypted LocatedCredential, not from the ORM row.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from vault.services.credential_locator import LocatedCredential


def _clean_urls(urls: list[str]) -> list[str]:
    return [u.strip() for u in urls if u and u.strip()]


class CredentialCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., max_length=1024)
    secret: str = Field(..., max_length=4096)
    notes: str = Field(default="", max_length=10000)
    website_urls: list[str] = Field(default_factory=list)
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    folder_id: Optional[str] = None

    @field_validator("website_urls")
    @classmethod
    def clean_urls(cls, v: list[str]) -> list[str]:
        return _clean_urls(v)


class CredentialUpdate(BaseModel):
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    username: Optional[str] = Field(default=None, max_length=1024)
    secret: Optional[str] = Field(default=None, max_length=4096)
    notes: Optional[str] = Field(default=None, max_length=10000)
    website_urls: Optional[list[str]] = None
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    folder_id: Optional[str] = None

    @field_validator("website_urls")
    @classmethod
    def clean_urls(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _clean_urls(v)


class BulkCreateRequest(BaseModel):
    items: list[CredentialCreate] = Field(..., min_length=1, max_length=100)


class BulkMoveRequest(BaseModel):
    """Destination for a set of credentials; a folder or a collection is required."""

    credential_ids: list[str] = Field(..., min_length=1, max_length=200)
    organization_id: Optional[str] = None
    collection_id: Optional[str] = None
    folder_id: Optional[str] = None

    @model_validator(mode="after")
    def check_destination(self) -> "BulkMoveRequest":
        if not (self.folder_id or self.collection_id):
            raise ValueError("Choose a destination folder or collection")
        return self


class CredentialSummary(BaseModel):
    id: str
    item_name: str
    username: str
    display_label: str
    website_urls: list[str]
    organization_id: Optional[str]
    collection_id: Optional[str]
    folder_id: Optional[str]
    created_by: str
    updated_at: datetime

    @classmethod
    def from_located(cls, item: LocatedCredential) -> "CredentialSummary":
        c = item.credential
        return cls(
            id=c.id,
            item_name=c.item_name,
            username=item.username,
            display_label=item.display_label,
            website_urls=list(c.website_urls or []),
            organization_id=c.organization_id,
            collection_id=c.collection_id,
            folder_id=c.folder_id,
            created_by=c.created_by,
            updated_at=c.updated_at,
        )


class CredentialRead(CredentialSummary):
    secret: str
    notes: str
    created_at: datetime

    @classmethod
    def from_located(cls, item: LocatedCredential) -> "CredentialRead":
        summary = CredentialSummary.from_located(item)
        return cls(
            **summary.model_dump(),
            secret=item.secret,
            notes=item.notes,
            created_at=item.credential.created_at,
        )


class CredentialListResponse(BaseModel):
    total: int
    items: list[CredentialSummary]


class PasswordGenerateRequest(BaseModel):
    length: int = Field(default=16, ge=4, le=128)
    uppercase: bool = True
    lowercase: bool = True
    numbers: bool = True
    special: bool = True
    min_numbers: int = Field(default=1, ge=0, le=128)
    min_special: int = Field(default=1, ge=0, le=128)
    avoid_ambiguous: bool = False

    @model_validator(mode="after")
    def check_character_sets(self) -> "PasswordGenerateRequest":
        if not (self.uppercase or self.lowercase or self.numbers or self.special):
            raise ValueError("At least one character set must be enabled")
        return self


class PasswordGenerateResponse(BaseModel):
    password: str
    length: int
