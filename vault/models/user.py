"""
models/user.py
--------------
User ORM model with roles, company binding and permission grants.

Role design:
  - 'master_admin':         Platform operator. Not bound to a company.
  - 'company_super_admin':  Owns one company; sees everything inside it.
  - 'company_user':         Restricted; sees only what its grants allow.

permissions holds three independent grant lists:
    {"organizations": [...], "collections": [...], "folders": [...]}
A grant at one level never implies a grant at another. The column is
replaced wholesale on update (never mutated in place) so the ORM notices.

The hashed_password column stores bcrypt hashes only. Plain text is
never stored and never logged.
"""

import uuid
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vault.db.base import Base, TimestampMixin

GRANT_LEVELS = ("organizations", "collections", "folders")


class UserRole(str, PyEnum):
    master_admin = "master_admin"
    company_super_admin = "company_super_admin"
    company_user = "company_user"


def empty_permissions() -> dict[str, list[str]]:
    return {level: [] for level in GRANT_LEVELS}


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False, index=True
    )
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=UserRole.company_user.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=empty_permissions
    )
    company_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Relationships
    company: Mapped[Optional["Company"]] = relationship("Company", back_populates="users")  # noqa: F821

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
