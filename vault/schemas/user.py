"""
schemas/user.py
---------------
Pydantic models for users, login responses and permission grants.

Security note:
  - hashed_password is NEVER included in any response schema.
  - Passwords require min 8 chars; enforce stronger rules in production.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from vault.models.user import UserRole


class UserCreate(BaseModel):
    """Used by a company super admin to add a restricted user."""
    email: EmailStr
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class PermissionGrants(BaseModel):
    """Three independent grant lists. A grant never implies another level."""
    organizations: list[str] = Field(default_factory=list)
    collections: list[str] = Field(default_factory=list)
    folders: list[str] = Field(default_factory=list)

    @field_validator("organizations", "collections", "folders")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(i for i in v if i))


class UserRead(BaseModel):
    id: str
    email: str
    username: str
    role: UserRole
    company_id: Optional[str]
    is_active: bool
    permissions: PermissionGrants
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserRead
